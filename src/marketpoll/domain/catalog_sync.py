"""Keep the stored asset/pair catalog in step with the versioned seed file."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.config import CatalogConfig
from marketpoll.domain.errors import SeedValidationError
from marketpoll.domain.pair_key import canonical_pair_key
from marketpoll.domain.seeds.catalog import (
    ParsedSeedCatalog,
    SeedCatalogCache,
    SeedLoader,
    build_seed_asset_rows,
    file_seed_loader,
    validate_seed_catalog,
)
from marketpoll.domain.seeds.defaults import DEFAULT_ASSETS, DEFAULT_PAIRS
from marketpoll.domain.seeds.generator import GeneratorParameters, MatchupMode
from marketpoll.repositories.catalog_repository import (
    count_active_pairs,
    deactivate_pairs_by_id,
    deactivate_stale_managed_assets,
    fetch_active_pair_sides,
    fetch_asset_ids_by_key,
    get_cursor_value,
    insert_assets_skip_existing,
    insert_pairs_skip_existing,
    set_assets_active,
    set_pairs_active_by_key,
    upsert_cursor,
)
from marketpoll.repositories.matchup_repository import MatchupFilter

logger = structlog.get_logger(__name__)

DEFAULT_CATALOG_SOURCE = "default_seed"


class SyncState(str, Enum):
    NOT_RUN = "not_run"
    SEED_PARSED = "seed_parsed"
    APPLIED = "applied"
    VERIFIED = "verified"
    SKIPPED = "skipped"
    FALLBACK = "fallback"


@dataclass
class SyncSummary:
    version: str
    state: SyncState = SyncState.NOT_RUN
    cursor_value: str | None = None
    asset_count: int = 0
    pair_count: int = 0
    activated_assets: int = 0
    deactivated_assets: int = 0
    activated_pairs: int = 0
    deactivated_pairs: int = 0
    active_eligible_pairs: int = 0
    seeded_defaults: bool = False
    errors: tuple[str, ...] = field(default_factory=tuple)


class CatalogSynchronizer:
    """Applies the seed catalog to the store; safe to call on every cold start.

    Assets and pairs are inserted with skip-duplicate semantics and only
    their ``active`` flags are reconciled afterwards, so existing scores and
    vote history are never touched. A seed that fails validation leaves the
    live catalog as it is.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: CatalogConfig,
        cache: SeedCatalogCache | None = None,
        seed_loader: SeedLoader | None = None,
        generator: GeneratorParameters | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.cache = cache or SeedCatalogCache(matchup_modes=config.matchup_modes, parameters=generator)
        self.seed_loader = seed_loader or file_seed_loader(config.seed_path)

    def ensure_catalog_current(self) -> SyncSummary:
        version = self.config.seed_version
        summary = SyncSummary(version=version)

        with self.session_factory() as session:
            cursor_value = get_cursor_value(session, self.config.cursor_source)
            eligible = count_active_pairs(session, managed_prefix=self.config.managed_key_prefix)

        if cursor_value == version and eligible > 0:
            summary.state = SyncState.SKIPPED
            summary.cursor_value = cursor_value
            summary.active_eligible_pairs = eligible
            logger.info("catalog_sync_skipped", version=version, active_eligible_pairs=eligible)
            return summary

        try:
            catalog = self.cache.get(version, self.seed_loader)
            validate_seed_catalog(
                catalog,
                min_assets=self.config.min_assets,
                min_pairs=self.config.min_pairs,
            )
        except SeedValidationError as exc:
            logger.warning(
                "catalog_seed_invalid",
                version=version,
                error=str(exc),
                asset_count=exc.asset_count,
                pair_count=exc.pair_count,
            )
            summary.errors = tuple(exc.errors) or (str(exc),)
            return self._fall_back(summary)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("catalog_seed_unreadable", version=version, error=str(exc))
            summary.errors = (str(exc),)
            return self._fall_back(summary)

        summary.state = SyncState.SEED_PARSED
        summary.asset_count = len(catalog.assets)
        summary.pair_count = len(catalog.pairs)

        with self.session_factory() as session:
            with session.begin():
                self._apply(session, catalog)
                summary.state = SyncState.APPLIED
                self._reconcile(session, catalog, summary)
                upsert_cursor(session, source=self.config.cursor_source, value=version)
            summary.cursor_value = version
            summary.active_eligible_pairs = count_active_pairs(
                session,
                managed_prefix=self.config.managed_key_prefix,
            )

        if summary.active_eligible_pairs > 0:
            summary.state = SyncState.VERIFIED
        else:
            logger.warning("catalog_sync_unverified", version=version)

        logger.info(
            "catalog_sync_applied",
            version=version,
            state=summary.state.value,
            assets=summary.asset_count,
            pairs=summary.pair_count,
            deactivated_assets=summary.deactivated_assets,
            deactivated_pairs=summary.deactivated_pairs,
            active_eligible_pairs=summary.active_eligible_pairs,
        )
        return summary

    def matchup_filter(self) -> MatchupFilter:
        """Selector criteria limited to managed pairs of the current seed.

        Uses the cached parse; when the seed is unreadable or invalid the
        filter is left open so a fallback catalog stays selectable.
        """
        try:
            pair_keys = self.cache.valid_pair_keys(self.config.seed_version, self.seed_loader)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("catalog_seed_unreadable", version=self.config.seed_version, error=str(exc))
            return MatchupFilter()
        if not pair_keys:
            return MatchupFilter()
        return MatchupFilter(managed_prefix=self.config.managed_key_prefix, pair_keys=pair_keys)

    def _apply(self, session: Session, catalog: ParsedSeedCatalog) -> None:
        asset_rows = build_seed_asset_rows(catalog.assets, source=self.config.seed_source_label)
        insert_assets_skip_existing(session, asset_rows)

        ids_by_key = fetch_asset_ids_by_key(session, catalog.asset_keys)
        pair_rows = []
        for pair in catalog.pairs:
            left_id = ids_by_key.get(pair.left_keys[0])
            right_id = ids_by_key.get(pair.right_keys[0])
            if left_id is None or right_id is None or left_id == right_id:
                continue
            pair_rows.append(
                {
                    "pair_key": pair.pair_key,
                    "left_asset_id": left_id,
                    "right_asset_id": right_id,
                    "left_asset_keys": list(pair.left_keys),
                    "right_asset_keys": list(pair.right_keys),
                    "matchup_mode": pair.matchup_mode.value,
                    "prompt": pair.prompt,
                    "featured": pair.featured,
                    "active": True,
                }
            )
        insert_pairs_skip_existing(session, pair_rows)

    def _reconcile(self, session: Session, catalog: ParsedSeedCatalog, summary: SyncSummary) -> None:
        prefix = self.config.managed_key_prefix
        asset_keys = catalog.asset_keys
        pair_keys = catalog.pair_keys

        summary.activated_assets = set_assets_active(session, asset_keys, active=True)
        summary.deactivated_assets = deactivate_stale_managed_assets(
            session,
            managed_prefix=prefix,
            keep_keys=asset_keys,
        )
        summary.activated_pairs = set_pairs_active_by_key(session, pair_keys, active=True)

        stale_pair_ids = [
            pair.pair_id
            for pair in fetch_active_pair_sides(session)
            if pair.pair_key not in pair_keys
            or not all(key.startswith(prefix) for key in pair.member_keys)
        ]
        summary.deactivated_pairs = deactivate_pairs_by_id(session, stale_pair_ids)

    def _fall_back(self, summary: SyncSummary) -> SyncSummary:
        with self.session_factory() as session:
            with session.begin():
                if count_active_pairs(session) == 0:
                    self._seed_defaults(session)
                    summary.seeded_defaults = True
                upsert_cursor(
                    session,
                    source=self.config.cursor_source,
                    value=self.config.fallback_version,
                )
            summary.active_eligible_pairs = count_active_pairs(session)

        summary.state = SyncState.FALLBACK
        summary.cursor_value = self.config.fallback_version
        logger.warning(
            "catalog_sync_fallback",
            version=summary.version,
            seeded_defaults=summary.seeded_defaults,
            active_pairs=summary.active_eligible_pairs,
        )
        return summary

    def _seed_defaults(self, session: Session) -> None:
        insert_assets_skip_existing(
            session,
            [
                {
                    "key": asset.key,
                    "label": asset.label,
                    "tier": asset.tier,
                    "image_url": None,
                    "active": True,
                    "metadata_json": {"source": DEFAULT_CATALOG_SOURCE},
                }
                for asset in DEFAULT_ASSETS
            ],
        )
        asset_keys = [asset.key for asset in DEFAULT_ASSETS]
        set_assets_active(session, asset_keys, active=True)
        ids_by_key = fetch_asset_ids_by_key(session, asset_keys)

        pair_rows = [
            {
                "pair_key": canonical_pair_key(pair.left_key, pair.right_key),
                "left_asset_id": ids_by_key[pair.left_key],
                "right_asset_id": ids_by_key[pair.right_key],
                "left_asset_keys": [pair.left_key],
                "right_asset_keys": [pair.right_key],
                "matchup_mode": MatchupMode.ONE_VS_ONE.value,
                "prompt": pair.prompt,
                "featured": pair.featured,
                "active": True,
            }
            for pair in DEFAULT_PAIRS
        ]
        insert_pairs_skip_existing(session, pair_rows)
        set_pairs_active_by_key(session, [row["pair_key"] for row in pair_rows], active=True)


__all__ = ["CatalogSynchronizer", "DEFAULT_CATALOG_SOURCE", "SyncState", "SyncSummary"]
