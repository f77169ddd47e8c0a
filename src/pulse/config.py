"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_MAINNET = 8453
BASE_SEPOLIA = 84532


class ReconcilerSettings(BaseSettings):
    """Source fetch bounds for poll reconciliation."""

    model_config = SettingsConfigDict(env_prefix="RECONCILER_")

    ledger_window: int = 100  # most recent sequential poll ids read from the ledger
    indexer_limit: int = 100  # max polls requested from the indexer per creator
    indexer_page_size: int = 100


class ConvergenceSettings(BaseSettings):
    """Post-transaction indexer catch-up schedule.

    Defaults give one check after 5s and then every 5s, twelve checks in
    total (roughly one minute) before giving up.
    All fields configurable via CONVERGENCE_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="CONVERGENCE_")

    initial_delay_seconds: float = 5.0
    interval_seconds: float = 5.0
    max_attempts: int = 12


class FundingSettings(BaseSettings):
    """Funding flow parameters."""

    model_config = SettingsConfigDict(env_prefix="FUNDING_")

    native_gas_reserve: Decimal = Decimal("0.01")  # kept back by "max" on the native asset


class VotingSettings(BaseSettings):
    """Quadratic voting limits."""

    model_config = SettingsConfigDict(env_prefix="VOTING_")

    max_votes_per_voter: int = 1_000_000


class IndexerSettings(BaseSettings):
    """Subgraph endpoints keyed by chain id."""

    model_config = SettingsConfigDict(env_prefix="INDEXER_")

    urls: dict[int, str] = {
        BASE_SEPOLIA: "https://api.studio.thegraph.com/query/122132/basepulse/v0.0.1",
    }
    timeout_seconds: float = 15.0


class LedgerSettings(BaseSettings):
    """JSON-RPC endpoints and polls contract deployments keyed by chain id."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    rpc_urls: dict[int, str] = {
        BASE_MAINNET: "https://mainnet.base.org",
        BASE_SEPOLIA: "https://sepolia.base.org",
    }
    polls_contracts: dict[int, str] = {}
    timeout_seconds: float = 10.0


class ApiSettings(BaseSettings):
    """JSON API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"
    default_chain_id: int = BASE_MAINNET
    reconciler: ReconcilerSettings = ReconcilerSettings()
    convergence: ConvergenceSettings = ConvergenceSettings()
    funding: FundingSettings = FundingSettings()
    voting: VotingSettings = VotingSettings()
    indexer: IndexerSettings = IndexerSettings()
    ledger: LedgerSettings = LedgerSettings()
    api: ApiSettings = ApiSettings()
