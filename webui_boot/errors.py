class BootError(RuntimeError):
	"""Base class for failures the bootstrap core reports itself."""


class BuildFatal(BootError):
	"""An image assembly step failed; no image may be produced."""

	def __init__(self, step: str, detail: str) -> None:
		self.step = step
		self.detail = detail
		super().__init__(f"build step '{step}' failed: {detail}")


class BootstrapFatal(BootError):
	"""The container start must be aborted before the application launches."""

	def __init__(self, detail: str) -> None:
		self.detail = detail
		super().__init__(f"bootstrap aborted: {detail}")
