from .container import ClinicServices, build_services
from .outcome_service import OutcomeService
from .scheduling_service import SchedulingService
