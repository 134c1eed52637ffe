"""Season/episode to absolute-episode conversion.

Catalogs split long-running shows into arc "seasons", while the upstream
provider numbers the same show continuously. Series listed in the season
offset table are mapped; every other series is assumed to be numbered per
season upstream and passes through unchanged.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..reference_data import ReferenceData, default_reference_data

LOGGER = logging.getLogger(__name__)


def to_absolute(
    series_id: str,
    season: int,
    episode: int,
    table: Optional[ReferenceData] = None,
) -> int:
    """Return the provider-facing episode number for ``series_id`` SxxEyy.

    Args:
        series_id: Catalog id of the series (e.g. ``tt0388629``)
        season: Catalog season number
        episode: Episode number within that season
        table: Reference tables to use; the bundled tables by default

    Returns:
        ``start + episode - 1`` for a mapped season, clamped to the season's
        last absolute episode; ``episode`` unchanged when the series or the
        season is not in the table.
    """
    reference = table if table is not None else default_reference_data()
    if series_id not in reference.season_offsets:
        return episode

    season_range = reference.season_range(series_id, season)
    if season_range is None:
        LOGGER.info("No season mapping for %s S%s, using episode %s as-is", series_id, season, episode)
        return episode

    absolute = season_range.absolute_start + episode - 1
    if absolute > season_range.absolute_end:
        LOGGER.info(
            "Episode %s exceeds season %s of %s (%s episodes), capping to %s",
            episode,
            season,
            series_id,
            season_range.length,
            season_range.absolute_end,
        )
        return season_range.absolute_end
    return absolute
