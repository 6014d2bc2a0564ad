from shared.clients.EngineManager import EngineManager
from shared.clients.parse.ParseClientInterface import ParseClientInterface
from shared.helper.HelperConfig import HelperConfig


class ParseClientManager(EngineManager):
    """Document parsing client selected by PARSE_ENGINE.

    "none" (the default) disables binary uploads; only text documents can
    then be ingested.
    """

    engine_key = "PARSE_ENGINE"
    default_engine = "none"
    disabled_value = "none"
    package = "shared.clients.parse"
    class_prefix = "ParseClient"

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        if self.instance is None:
            self.logging.info("No parse engine configured; binary uploads are disabled.")

    def get_client(self) -> ParseClientInterface | None:
        return self.instance
