from __future__ import annotations

import logging
from typing import List

from src.instances_api.schemas.instances import InstanceDescriptor
from src.instances_api.services.http_client import ProbeHttpClient

logger = logging.getLogger(__name__)

# Table rows before the data: header line and the |---| separator.
_TABLE_PREAMBLE_ROWS = 2


# PUBLIC_INTERFACE
def parse_roster(markdown: str) -> List[InstanceDescriptor]:
    """
    Parse the public instances markdown table.

    Rows look like `Name | https://api.example | Locations | Yes | ...`; lines with fewer than
    five cells are not table rows and are skipped.
    """
    instances: List[InstanceDescriptor] = []
    skipped = 0
    for line in markdown.split("\n"):
        cells = line.split("|")
        if len(cells) < 5:
            continue
        if skipped < _TABLE_PREAMBLE_ROWS:
            skipped += 1
            continue

        api_url = cells[1].strip()
        if not api_url:
            continue
        instances.append(
            InstanceDescriptor(
                name=cells[0].strip(),
                api_url=api_url,
                locations=cells[2].strip(),
                cdn=cells[3].strip() == "Yes",
            )
        )
    return instances


# PUBLIC_INTERFACE
async def fetch_roster(http: ProbeHttpClient, url: str) -> List[InstanceDescriptor]:
    """Download and parse the roster; transport and status failures propagate."""
    resp = await http.get(url)
    roster = parse_roster(resp.text)
    logger.info("Fetched roster with %d instances", len(roster))
    return roster
