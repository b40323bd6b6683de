from propertyhub.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from propertyhub.app.models.user import User  # noqa: F401
from propertyhub.app.models.property import Property  # noqa: F401
from propertyhub.app.models.tenancy import Tenancy  # noqa: F401
from propertyhub.app.models.booking import Booking  # noqa: F401
from propertyhub.app.models.maintenance_request import MaintenanceRequest  # noqa: F401
from propertyhub.app.models.payment import Payment  # noqa: F401
from propertyhub.app.models.payment_event import PaymentEvent  # noqa: F401
