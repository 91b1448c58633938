from .provider import APIConfig, ConfigProvider, EnvConfigProvider, ShellConfig

__all__ = ["APIConfig", "ShellConfig", "ConfigProvider", "EnvConfigProvider"]
