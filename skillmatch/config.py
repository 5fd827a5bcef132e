"""Engine configuration loader — reads skillmatch.yaml + .env."""

import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from skillmatch.exceptions import ConfigError

CONFIG_FILENAME = "skillmatch.yaml"

VALID_BACKENDS = ("tinydb", "http")


@dataclass
class StoreConfig:
    backend: str = "tinydb"
    path: str = "data/skillmatch.json"
    base_url: str = ""
    api_token: str = ""
    timeout_seconds: float = 5.0
    retry_backoff_seconds: float = 0.2


@dataclass
class EngineSettings:
    max_workers: int = 8


@dataclass
class SkillsConfig:
    # skill name -> extra keywords merged into the default dictionary
    keywords: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class FeedbackConfig:
    process_interval_seconds: int = 60


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""  # empty = stderr only


@dataclass
class RetentionConfig:
    feedback_days: int = 180
    audit_days: int = 365


@dataclass
class EngineConfig:
    name: str
    org: str
    project_dir: Path
    store: StoreConfig = field(default_factory=StoreConfig)
    engine: EngineSettings = field(default_factory=EngineSettings)
    skills: SkillsConfig = field(default_factory=SkillsConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)

    @property
    def store_path(self) -> Path:
        """Absolute path of the TinyDB file."""
        path = Path(self.store.path)
        return path if path.is_absolute() else self.project_dir / path

    @staticmethod
    def load(project_dir: Path) -> "EngineConfig":
        """Load configuration from skillmatch.yaml and .env in project_dir."""
        project_dir = Path(project_dir)

        env_file = project_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            try:
                mode = env_file.stat().st_mode
                if mode & 0o077:
                    warnings.warn(
                        f".env file at {env_file} is group/other readable (mode {oct(mode)}). "
                        "Run: chmod 600 .env",
                        stacklevel=2,
                    )
            except OSError:
                pass

        config_path = project_dir / CONFIG_FILENAME
        if not config_path.exists():
            raise ConfigError(
                f"{CONFIG_FILENAME} not found in {project_dir}",
                suggestion=f"Create {CONFIG_FILENAME} with a 'project' section (name, org).",
            )

        try:
            raw = yaml.safe_load(config_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {CONFIG_FILENAME}: {e}")

        if not isinstance(raw, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must be a YAML mapping")

        project = raw.get("project")
        if not project:
            raise ConfigError(
                f"{CONFIG_FILENAME} missing 'project' section",
                suggestion="Add a 'project' section with name and org.",
            )
        for req in ("name", "org"):
            if req not in project:
                raise ConfigError(
                    f"{CONFIG_FILENAME} project.{req} is required",
                    suggestion=f"Add '{req}' to the project section.",
                )

        # Store
        store_raw = raw.get("store", {}) or {}
        backend = store_raw.get("backend", "tinydb")
        if backend not in VALID_BACKENDS:
            raise ConfigError(
                f"Unknown store.backend '{backend}'",
                suggestion=f"Use one of: {', '.join(VALID_BACKENDS)}.",
            )
        store = StoreConfig(
            backend=backend,
            path=store_raw.get("path", "data/skillmatch.json"),
            base_url=store_raw.get("base_url") or os.environ.get("SKILLMATCH_STORE_URL", ""),
            api_token=os.environ.get("SKILLMATCH_API_TOKEN", ""),
            timeout_seconds=float(store_raw.get("timeout_seconds", 5.0)),
            retry_backoff_seconds=float(store_raw.get("retry_backoff_seconds", 0.2)),
        )
        if store.timeout_seconds <= 0:
            raise ConfigError("store.timeout_seconds must be positive")
        if store.retry_backoff_seconds < 0:
            raise ConfigError("store.retry_backoff_seconds must not be negative")
        if store.backend == "http" and not store.base_url:
            raise ConfigError(
                "store.backend is 'http' but no base_url is configured",
                suggestion="Set store.base_url or SKILLMATCH_STORE_URL in .env.",
            )

        # Engine
        engine_raw = raw.get("engine", {}) or {}
        engine = EngineSettings(max_workers=int(engine_raw.get("max_workers", 8)))
        if engine.max_workers < 1:
            raise ConfigError("engine.max_workers must be at least 1")

        # Skill keywords
        skills_raw = raw.get("skills", {}) or {}
        keywords_raw = skills_raw.get("keywords", {}) or {}
        if not isinstance(keywords_raw, dict):
            raise ConfigError("skills.keywords must be a mapping of skill -> keyword list")
        keywords = {
            str(skill).lower(): [str(kw).lower() for kw in (kws or [])]
            for skill, kws in keywords_raw.items()
        }

        # Feedback folding
        fb_raw = raw.get("feedback", {}) or {}
        feedback = FeedbackConfig(
            process_interval_seconds=int(fb_raw.get("process_interval_seconds", 60)),
        )
        if feedback.process_interval_seconds < 1:
            raise ConfigError("feedback.process_interval_seconds must be at least 1")

        log_raw = raw.get("logging", {}) or {}
        logging_config = LoggingConfig(
            level=log_raw.get("level", "INFO"),
            file=log_raw.get("file", ""),
        )

        ret_raw = raw.get("retention", {}) or {}
        retention = RetentionConfig(
            feedback_days=int(ret_raw.get("feedback_days", 180)),
            audit_days=int(ret_raw.get("audit_days", 365)),
        )

        return EngineConfig(
            name=project["name"],
            org=str(project["org"]),
            project_dir=project_dir,
            store=store,
            engine=engine,
            skills=SkillsConfig(keywords=keywords),
            feedback=feedback,
            logging=logging_config,
            retention=retention,
        )
