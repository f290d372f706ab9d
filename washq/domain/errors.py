class WashQError(Exception):
    """Base exception for car-wash job engine errors."""
    pass


class ValidationError(WashQError):
    pass


class BusinessNotFoundError(WashQError):
    def __init__(self, business_id):
        self.business_id = business_id
        super().__init__(f"Business {business_id} not found")


class JobNotFoundError(WashQError):
    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class ServiceNotFoundError(WashQError):
    def __init__(self, service_id):
        self.service_id = service_id
        super().__init__(f"Service {service_id} not found")


class CustomerNotFoundError(WashQError):
    def __init__(self, customer_id):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


class CarNotFoundError(WashQError):
    def __init__(self, car_id):
        self.car_id = car_id
        super().__init__(f"Car {car_id} not found")


class InvalidTransitionError(WashQError):
    """`requested` is None when an advance was asked for and there is no next stage."""

    def __init__(self, current_status, requested_status=None):
        self.current = current_status
        self.requested = requested_status
        if requested_status is None:
            super().__init__(f"Job in {current_status} has no next stage")
        else:
            super().__init__(f"Cannot transition from {current_status} to {requested_status}")


class UnknownStatusError(WashQError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown job status: {value!r}")


class CapacityRejectedError(WashQError):
    """Business-rule refusal, not a server fault: the shop is full right now."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class WhatsAppNotConfiguredError(WashQError):
    pass
