"""Exception taxonomy shared by the model clients, tools and agents."""


class ConfigurationError(RuntimeError):
    """A capability (model provider, tool, agent) is used while unconfigured."""


class ProviderUnavailable(ConfigurationError):
    """The model provider has no credential configured."""


class UpstreamError(RuntimeError):
    """A remote call did not complete successfully (non-2xx, transport failure, timeout)."""


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class UnknownToolError(ToolExecutionError):
    """The requested tool is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name
