import asyncio
import signal
import sys
from contextlib import AsyncExitStack
from typing import List, Optional

from infra.clients import GyazoClient, create_http_client
from infra.config import WorkspaceConfig, load_config
from infra.errors import PipelineError
from infra.logger import PipelineLogger, create_logger
from infra.utils import MutoolRasterizer
from pipeline.driver import PhaseReport, PipelineDriver
from pipeline.isbn import GoogleBooksSearch, IsbnPrompter, IsbnResolutionChain, NdlSearch
from pipeline.ocr_pages import OcrPagePipeline
from pipeline.phases import BuildOcrPhase, ImportPhase, PhaseHandler, RasterizePhase, ResolveIsbnPhase
from pipeline.scanner import PHASE_ORDER, Phase, PhaseScanner
from pipeline.wiki import CosenseApiClient, CosenseBrowser, CosenseWorkspace


def phase_logger(config: WorkspaceConfig, phase: Phase) -> PipelineLogger:
    return create_logger(phase.value, log_dir=config.log_dir, level=config.log_level)


async def build_handlers(
    config: WorkspaceConfig,
    stack: AsyncExitStack,
    phases: List[Phase],
) -> List[PhaseHandler]:
    """Wire clients and phase handlers; every opened resource is closed by stack.

    Credentials are not checked here: a phase checks its own in before(),
    which only runs when the phase has pending items.
    """
    handlers: List[PhaseHandler] = []

    if Phase.RASTERIZE in phases:
        logger = phase_logger(config, Phase.RASTERIZE)
        stack.callback(logger.close)
        rasterizer = MutoolRasterizer(
            command=config.rasterize.command,
            resolution=config.rasterize.resolution,
            logger=logger,
        )
        handlers.append(RasterizePhase(rasterizer, config.rasterize, logger=logger))

    if Phase.RESOLVE_ISBN in phases:
        logger = phase_logger(config, Phase.RESOLVE_ISBN)
        stack.callback(logger.close)
        http = create_http_client(timeout=config.isbn.timeout_seconds)
        stack.push_async_callback(http.aclose)

        interactive = config.isbn.interactive and IsbnPrompter.available()
        if config.isbn.interactive and not interactive:
            logger.info("stdin is not a terminal, ISBN prompt disabled")

        chain = IsbnResolutionChain(
            strategies=[
                NdlSearch(http, max_results=config.isbn.max_results),
                GoogleBooksSearch(http, max_results=config.isbn.max_results),
            ],
            prompter=IsbnPrompter(),
            interactive=interactive,
            logger=logger,
        )
        handlers.append(ResolveIsbnPhase(chain, config.isbn, logger=logger))

    if Phase.BUILD_OCR in phases:
        logger = phase_logger(config, Phase.BUILD_OCR)
        stack.callback(logger.close)
        gyazo = GyazoClient(config.gyazo_token, timeout=config.ocr.timeout_seconds)
        stack.push_async_callback(gyazo.aclose)

        pages_api = None
        if config.profile_page:
            pages_api = CosenseApiClient(config.cosense_sid, config=config.wiki, logger=logger)
            stack.push_async_callback(pages_api.aclose)

        handlers.append(
            BuildOcrPhase(
                OcrPagePipeline(gyazo, config.ocr, logger=logger),
                config.ocr,
                pages_api=pages_api,
                profile_page=config.profile_page,
                check_credentials=config.require_gyazo_token,
                logger=logger,
            )
        )

    if Phase.IMPORT in phases and config.import_transport != "none":
        logger = phase_logger(config, Phase.IMPORT)
        stack.callback(logger.close)
        browser = CosenseBrowser(
            config.browser_profile_dir,
            headless=config.headless,
            import_timeout=config.wiki.timeout_seconds,
            logger=logger,
        )
        stack.push_async_callback(browser.aclose)

        check_credentials = None
        if config.import_transport == "api":
            importer = CosenseApiClient(config.cosense_sid, config=config.wiki, logger=logger)
            stack.push_async_callback(importer.aclose)
            check_credentials = config.require_cosense_sid
        else:
            importer = browser

        wiki = CosenseWorkspace(browser, importer, config.project_prefix, logger=logger)
        handlers.append(ImportPhase(wiki, config.wiki, check_credentials=check_credentials, logger=logger))

    return handlers


def install_signal_handlers(driver: PipelineDriver) -> None:
    loop = asyncio.get_running_loop()

    def on_signal(sig):
        driver.request_shutdown()
        # a second signal falls back to the default behaviour
        loop.remove_signal_handler(sig)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except (NotImplementedError, RuntimeError):
            pass


async def run_pipeline(
    config: WorkspaceConfig,
    phases: Optional[List[Phase]] = None,
    logger: Optional[PipelineLogger] = None,
) -> List[PhaseReport]:
    phases = phases or PHASE_ORDER
    logger = logger or create_logger("pipeline", log_dir=config.log_dir, level=config.log_level)

    async with AsyncExitStack() as stack:
        handlers = await build_handlers(config, stack, phases)
        driver = PipelineDriver(
            PhaseScanner(config.workspace_dir, logger=logger),
            handlers,
            logger=logger,
        )
        install_signal_handlers(driver)
        return await driver.run(phases)


def cmd_run(args):
    overrides = {}
    if args.import_transport:
        overrides["import_transport"] = args.import_transport
    if args.non_interactive:
        overrides["isbn.interactive"] = False

    try:
        config = load_config(args.workspace, overrides=overrides)
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    if not config.workspace_dir.is_dir():
        print(f"❌ Workspace not found: {config.workspace_dir}")
        sys.exit(1)

    phases = [Phase(args.phase)] if args.phase else None
    logger = create_logger("pipeline", log_dir=config.log_dir, level=config.log_level)

    try:
        reports = asyncio.run(run_pipeline(config, phases, logger))
    except PipelineError as e:
        logger.error("Pipeline aborted", error=str(e))
        sys.exit(1)
    finally:
        logger.close()

    if any(report.stopped for report in reports):
        sys.exit(130)
