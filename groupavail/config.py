"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class DefaultsConfig(BaseModel):
    """Default settings for availability queries."""
    resolution_minutes: int = 15
    duration_minutes: int = 30
    window_days: int = 7
    done_early_minutes: int = 60

    @field_validator("resolution_minutes", "duration_minutes", "window_days", "done_early_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations and counts are positive."""
        if value <= 0:
            raise ValueError(f"value must be greater than zero, got {value}")
        return value


class PresenceConfig(BaseModel):
    """Where presence overrides live and where changes are broadcast."""
    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "presence:"
    channel: str = "presence:updates"
    socket_timeout: float = 5


class CalendarConfig(BaseModel):
    """Source of busy intervals."""
    source: Literal["mock", "graph"] = "mock"
    mock_data_file: Optional[Path] = None
    graph_access_token: str = ""
    graph_timeout: float = 30

    @model_validator(mode="after")
    def validate_graph_token(self) -> "CalendarConfig":
        """The Graph source cannot work without a token."""
        if self.source == "graph" and not self.graph_access_token:
            raise ValueError("calendar.graph_access_token is required when source is 'graph'")
        return self


class Member(BaseModel):
    """A person the engine can be asked about."""
    name: str  # Used as alias
    person_id: str
    calendar_id: str = ""  # Optional: for mock data mapping


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    log_level: str = "INFO"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    members: List[Member] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("members")
    @classmethod
    def validate_members(cls, value: List[Member]) -> List[Member]:
        """Ensure member aliases and person ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for member in value:
            name_key = member.name.lower()
            id_key = member.person_id.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate member name detected: {member.name}")
            if id_key in seen_ids:
                raise ValueError(f"Duplicate member person_id detected: {member.person_id}")
            seen_names.add(name_key)
            seen_ids.add(id_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative data files are resolved against the config file's directory
        mock_file = config.calendar.mock_data_file
        if mock_file is not None and not mock_file.is_absolute():
            config.calendar.mock_data_file = config_path.parent / mock_file

        return config

    def find_member_by_name(self, name: str) -> Member | None:
        """Find a member by their name (alias)."""
        for member in self.members:
            if member.name.lower() == name.lower():
                return member
        return None

    def find_member_by_id(self, person_id: str) -> Member | None:
        """Find a member by their person id."""
        for member in self.members:
            if member.person_id.lower() == person_id.lower():
                return member
        return None

    def resolve_person(self, identifier: str) -> str:
        """
        Resolve a member name (alias) or person id to a person id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        member = self.find_member_by_name(identifier) or self.find_member_by_id(identifier)
        if member:
            return member.person_id

        raise ValueError(
            f"Unknown person identifier: '{identifier}'. "
            f"Use a configured name or person_id."
        )

    def resolve_people(self, identifiers: Sequence[str]) -> List[str]:
        """
        Resolve multiple identifiers, ensuring uniqueness.

        An empty sequence means every configured member.

        Raises:
            ValueError: If any identifier is unknown or nobody is configured
        """
        if not identifiers:
            if not self.members:
                raise ValueError("No people provided and no members configured.")
            return [member.person_id for member in self.members]

        resolved: List[str] = []
        unknown_identifiers: List[str] = []

        for identifier in identifiers:
            try:
                person_id = self.resolve_person(identifier)
            except ValueError:
                unknown_identifiers.append(identifier)
                continue

            if person_id not in resolved:
                resolved.append(person_id)

        if unknown_identifiers:
            missing = ", ".join(sorted(set(unknown_identifiers)))
            raise ValueError(
                f"Unknown person identifier(s): {missing}. "
                "Ensure they exist in the configuration."
            )

        return resolved

    def calendar_ids(self) -> Dict[str, str]:
        """Person id -> calendar id for members with an explicit mapping."""
        return {m.person_id: m.calendar_id for m in self.members if m.calendar_id}

    def display_names(self) -> Dict[str, str]:
        return {m.person_id: m.name for m in self.members}


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
