from .controller import Controller, Reading, ReadStatus  # noqa: F401 unused imports
from .event_log import get_file_log_sink  # noqa: F401 unused imports
from .link_config import LinkConfig, Parity, StopBits  # noqa: F401 unused imports
from .settings import load_link_config  # noqa: F401 unused imports
from .transport import Transport  # noqa: F401 unused imports
