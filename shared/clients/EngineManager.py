from typing import Any

from shared.helper.HelperConfig import HelperConfig


class EngineManager:
    """Base of the per-type managers: reads the engine name from the environment
    and instantiates the matching implementation.

    Engine "foo" of a type whose package is ``shared.clients.rag`` and whose
    class prefix is ``RAGClient`` is loaded from
    ``shared.clients.rag.foo.RAGClientFoo``. New engines only need a module
    at that path, no registration.

    Attributes:
        engine_key (str): Environment variable naming the engine (e.g. "RAG_ENGINE").
        default_engine (str | None): Engine used when the variable is unset.
        package (str): Dotted package holding one sub-package per engine.
        class_prefix (str): Class name prefix in front of the capitalised engine name.
        disabled_value (str | None): Engine value meaning "no implementation"
                                     (the manager then holds None).
    """

    engine_key: str = ""
    default_engine: str | None = None
    package: str = ""
    class_prefix: str = ""
    disabled_value: str | None = None

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.engine = self._get_engine_from_env()
        self.instance = self._instantiate(self.engine) if self.engine else None

    def _get_engine_from_env(self) -> str | None:
        """Return the capitalised engine name (e.g. "Qdrant"), or None when disabled."""
        engine = self.helper_config.get_string_val(self.engine_key, default=self.default_engine).strip().lower()
        if self.disabled_value is not None and engine == self.disabled_value:
            return None
        return engine.capitalize()

    def _instantiate(self, engine: str) -> Any:
        """Import and construct the implementation of ``engine``.

        Raises:
            ValueError: If no module/class exists for the engine.
            ConfigurationError: If the implementation is missing required settings.
        """
        class_name = f"{self.class_prefix}{engine}"
        try:
            module = __import__(f"{self.package}.{engine.lower()}.{class_name}", fromlist=[class_name])
            engine_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.engine_key} '{engine.lower()}'. Error: {e}")
        instance = engine_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s (%s=%s).", class_name, self.engine_key, engine.lower())
        return instance
