"""ASGI entrypoint for the VIN audit API."""

from vin_audit.api.app import create_app
from vin_audit.containers import build_container

app = create_app(build_container())
