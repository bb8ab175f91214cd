import os
import uuid

import requests


class PreFlightCheckError(Exception):
    """Custom exception for pre-flight check failures."""
    pass


def check_export_source(source: dict, *, session=None):
    """
    Verifies that the export can be read: the file exists, or the export API
    answers and accepts the token.

    Raises:
        PreFlightCheckError: If the source is missing or unreachable.
    """
    file_path = source.get("import_file_path")
    if file_path:
        if not os.path.isfile(file_path):
            raise PreFlightCheckError(f"Export file not found: {file_path}")
        return

    api_uri = source.get("api_uri")
    if not api_uri:
        raise PreFlightCheckError("Neither an export file nor an export API url is configured.")

    http = session or requests
    headers = {"Authorization": f"Bearer {source.get('api_token', '')}"}
    try:
        response = http.head(api_uri, headers=headers, timeout=10, allow_redirects=True)
        # Some servers refuse HEAD; reaching them is enough.
        if response.status_code != 405:
            response.raise_for_status()
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code in (401, 403):
            raise PreFlightCheckError("The export API token is invalid or expired.")
        raise PreFlightCheckError(f"Unexpected answer from the export API: {e}")
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to the export API: {e}")


def check_site_id(site_id):
    try:
        return uuid.UUID(str(site_id))
    except ValueError:
        raise PreFlightCheckError(f"Site id is not a valid UUID: {site_id!r}")


def check_output_path(output_path):
    if not output_path:
        raise PreFlightCheckError("Output path is not configured.")
    try:
        os.makedirs(output_path, exist_ok=True)
    except OSError as e:
        raise PreFlightCheckError(f"Output path {output_path} cannot be created: {e}")
    if not os.access(output_path, os.W_OK):
        raise PreFlightCheckError(f"Output path {output_path} is not writable.")


def run_import_pre_flight_checks(config: dict, *, session=None):
    """
    Verifies that the import environment is correctly configured.

    Args:
        config: The application configuration dictionary.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    print("[INFO] Running pre-flight checks...")

    check_export_source(config.get("source", {}), session=session)
    check_site_id(config.get("target", {}).get("site_id"))
    check_output_path(config.get("target", {}).get("output_path"))

    print("[INFO] Pre-flight checks passed successfully.")
