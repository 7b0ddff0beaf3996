from .assembler.commands import CommandRunner
from .assembler.model_cache import ModelCacheWarmer
from .assembler.packages import PackageInstaller
from .assembler.pipeline import ImageAssembler
from .config.config import BuildParameters, Layout


def build_assembler(params: BuildParameters, layout: Layout, python: str | None = None) -> ImageAssembler:
    runner = CommandRunner()
    installer = PackageInstaller(runner, python=python)
    warmer = ModelCacheWarmer()
    return ImageAssembler(
        params=params,
        layout=layout,
        runner=runner,
        installer=installer,
        warmer=warmer,
    )
