"""pyCasaTunesBridge - bridge CasaTunes zones to an accessory registry."""

__version__ = "0.1.0"

from pyCasaTunesBridge.enums import (  # noqa: F401
    Capability,
    Operation,
    ReconcileAction,
)

from pyCasaTunesBridge.exceptions import (  # noqa: F401
    BridgeError,
    ConfigurationError,
    MalformedResponseError,
    TransportError,
)

from pyCasaTunesBridge.accessory_id import (  # noqa: F401
    AccessoryNamespace,
    derive_accessory_uuid,
)

from pyCasaTunesBridge.models import (  # noqa: F401
    NOT_APPLICABLE,
    PlatformInfo,
    ZoneRecord,
    normalize_model,
)

from pyCasaTunesBridge.config import (  # noqa: F401
    BridgeConfig,
    is_configured_uri,
    load_config,
)

from pyCasaTunesBridge.client import CasaTunesClient  # noqa: F401

from pyCasaTunesBridge.accessory import (  # noqa: F401
    Accessory,
    AccessoryInformation,
)

from pyCasaTunesBridge.persistence import AccessoryStore  # noqa: F401

from pyCasaTunesBridge.reconciler import (  # noqa: F401
    ReconcileResult,
    Reconciler,
    reconcile,
)

from pyCasaTunesBridge.propagation import GroupPropagationEngine  # noqa: F401

from pyCasaTunesBridge.dispatch import (  # noqa: F401
    CharacteristicDispatcher,
    CharacteristicRequest,
    CharacteristicResponse,
)

from pyCasaTunesBridge.host import AccessoryHost  # noqa: F401

from pyCasaTunesBridge.bridge import (  # noqa: F401
    AUTO_SAVE_DELAY,
    CasaTunesPlatform,
)
