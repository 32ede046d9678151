"""Command-line entry point for translating a subtitle file."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.config import settings
from common.logging_config import setup_service_logging
from manager.file_service import LocalFileSink
from manager.workspace import NothingToExportError, SubtitleWorkspace
from translator.schemas import Credentials, TranslationOptions
from translator.translation_service import HttpTranslationBackend

logger = logging.getLogger(__name__)


class ArgsCredentialStore:
    """Credentials from command-line flags, falling back to settings."""

    def __init__(self, args: argparse.Namespace):
        self.args = args

    def get_credentials(self) -> Credentials:
        return Credentials(
            api_key=self.args.api_key or settings.openai_api_key,
            custom_host=self.args.custom_host or settings.translate_custom_host,
        )

    def get_options(self) -> TranslationOptions:
        return TranslationOptions(
            prompt_template=self.args.prompt_template
            or settings.translate_prompt_template,
            use_google=self.args.google or settings.use_google,
        )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subtitle-translate",
        description="Translate an SRT/VTT/ASS/TXT subtitle file, keeping timing and numbering.",
    )
    parser.add_argument("input", type=str, help="Subtitle file to translate.")
    parser.add_argument(
        "--lang",
        type=str,
        required=True,
        help="Target language passed to the translation backend.",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=None,
        help="Translate only this 1-based page instead of the whole file.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for output files (default: SUBTITLE_STORAGE_PATH).",
    )
    parser.add_argument(
        "--bilingual",
        action="store_true",
        help="Also write a bilingual SRT (original above translation).",
    )
    parser.add_argument(
        "--original",
        action="store_true",
        help="Also write the original subtitles as canonical SRT.",
    )
    parser.add_argument(
        "--google",
        action="store_true",
        help="Use the alternate (Google) translation provider.",
    )
    parser.add_argument("--api-key", type=str, default=None, help="Your own API key.")
    parser.add_argument(
        "--custom-host", type=str, default=None, help="Custom upstream API host."
    )
    parser.add_argument(
        "--prompt-template", type=str, default=None, help="Prompt template override."
    )
    parser.add_argument(
        "--backend-url",
        type=str,
        default=None,
        help="Translation backend root URL (default: TRANSLATE_API_BASE_URL).",
    )
    return parser


def _notify(level: str, message: str) -> None:
    if level == "error":
        logger.error(f"❌ {message}")
    else:
        logger.info(f"✅ {message}")


async def run(args: argparse.Namespace) -> int:
    async with HttpTranslationBackend(base_url=args.backend_url) as backend:
        workspace = SubtitleWorkspace(
            backend,
            credential_store=ArgsCredentialStore(args),
            file_sink=LocalFileSink(args.output_dir),
            notify=_notify,
        )

        try:
            workspace.load_file(args.input)
        except (FileNotFoundError, ValueError):
            return 1

        if args.page is not None:
            if not workspace.pagination.go_to(args.page - 1):
                _notify(
                    "error",
                    f"Page {args.page} out of range 1-{workspace.pagination.page_count}",
                )
                return 1
            ok = await workspace.translate_current_page(args.lang)
        else:
            ok = await workspace.translate_file(args.lang)

        # Whatever was translated before a failure is still written out
        try:
            if args.original:
                workspace.export_original()
            written: List[str] = [workspace.export_translated()]
            if args.bilingual:
                written.append(workspace.export_bilingual())
        except NothingToExportError:
            return 1

        for path in written:
            logger.info(f"📄 Wrote {path}")
        return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    service_logger = setup_service_logging("subtitle-translate")
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if not Path(args.input).is_file():
        parser.error(f"input file not found: {args.input}")

    service_logger.info(f"🚀 Translating {args.input} to {args.lang}")
    try:
        exit_code = asyncio.run(run(args))
    except Exception:
        service_logger.exception(f"❌ Unexpected error translating {args.input}")
        raise

    if exit_code:
        service_logger.warning(f"⚠️  Finished {args.input} with errors")
    else:
        service_logger.info(f"✅ Finished {args.input}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
