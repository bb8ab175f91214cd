"""
Entry point for the legacy site import tool.
"""

import os
import sys

from src.extractors.export_extractor import ExportLoadError, load_export
from src.import_tool import LegacyImportTool
from src.utils.pre_flight_checks import PreFlightCheckError, run_import_pre_flight_checks

CONFIG_FILE = os.getenv("BRC_IMPORT_CONFIG", "config/import_config.json")


def main():
    """
    Main function to run the legacy import tool.
    """
    tool = LegacyImportTool(config_file=CONFIG_FILE)
    tool.log_message("Starting legacy site import.")

    try:
        run_import_pre_flight_checks(tool.config)
    except PreFlightCheckError as e:
        tool.log_message(f"Pre-flight checks failed: {e}", level="ERROR")
        return 1

    try:
        export = load_export(tool.config["source"], log=tool.log_message)
    except (ExportLoadError, FileNotFoundError) as e:
        tool.log_message(f"Could not load the export: {e}", level="ERROR")
        return 1

    tool.log_message(
        f"Export loaded: {len(export.news)} news, {len(export.articles)} articles, "
        f"{len(export.files)} files, {len(export.gallery_pics)} gallery pictures."
    )

    try:
        ok = tool.run(export)
    finally:
        tool.repository.close()

    tool.log_message("Import process finished.")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
