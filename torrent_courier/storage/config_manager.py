"""
Manages loading, validation, and migration of the INI configuration file.

Besides the settings in the DEFAULT section, the file holds one section per
feed agent and per subject:

    [agent:nyaa]
    base_url = https://nyaa.si/?page=rss&q={query}

    [subject:golumpa]
    agent = nyaa
    query = golumpa
    pattern = golumpa dub
"""

import configparser
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from torrent_courier.exceptions import ConfigurationError
from torrent_courier.models.config import CourierConfig
from torrent_courier.models.subject import Agent, Subject

log = logging.getLogger(__name__)

AGENT_PREFIX = "agent:"
SUBJECT_PREFIX = "subject:"
DEFAULT_DATABASE_NAME = "courier.sqlite"


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = self._new_parser()

    @staticmethod
    def _new_parser() -> configparser.ConfigParser:
        # Feed URLs routinely contain '%', so interpolation is disabled.
        return configparser.ConfigParser(interpolation=None)

    def _read(self) -> configparser.ConfigParser:
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'torrent-courier init' first."
            )
        parser = self._new_parser()
        try:
            parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e
        return parser

    def load_config(self, cli_options: dict[str, Any] | None = None) -> CourierConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated CourierConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        self._parser = self._read()

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        config_from_file = self._get_config_as_dict()

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        config_dir = self.config_file_path.parent
        if not config_from_file.get("database_path"):
            config_from_file["database_path"] = str(config_dir / DEFAULT_DATABASE_NAME)

        try:
            return CourierConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def load_agents(self) -> dict[str, Agent]:
        """Reads every [agent:<name>] section."""
        parser = self._read()
        agents = {}
        for section_name in parser.sections():
            if not section_name.startswith(AGENT_PREFIX):
                continue
            name = section_name[len(AGENT_PREFIX) :].strip()
            base_url = parser[section_name].get("base_url", "").strip()
            if not name or not base_url:
                raise ConfigurationError(
                    f"Agent section '{section_name}' needs a name and a base_url."
                )
            agents[name] = Agent(name=name, base_url=base_url)
        return agents

    def load_subjects(self) -> list[Subject]:
        """
        Reads every [subject:<name>] section and resolves it against its agent.

        The file is re-read on every call so a running scanner picks up edits.
        """
        agents = self.load_agents()
        parser = self._read()
        subjects = []
        for section_name in parser.sections():
            if not section_name.startswith(SUBJECT_PREFIX):
                continue
            section = parser[section_name]
            name = section_name[len(SUBJECT_PREFIX) :].strip()
            agent_name = section.get("agent", "").strip()
            query = section.get("query", "").strip()
            pattern = section.get("pattern", "").strip() or None

            if agent_name not in agents:
                raise ConfigurationError(
                    f"Subject '{name}' refers to unknown agent '{agent_name}'."
                )
            try:
                subjects.append(
                    Subject(
                        name=name, agent=agents[agent_name], query=query, pattern=pattern
                    )
                )
            except re.error as e:
                raise ConfigurationError(
                    f"Subject '{name}' has an invalid pattern {pattern!r}: {e}"
                ) from e
        return subjects

    def save_new_config(
        self,
        settings: dict[str, Any],
        agents: list[Agent] | None = None,
        subjects: list[Subject] | None = None,
    ) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
            agents: Feed agents to write as [agent:<name>] sections.
            subjects: Subjects to write as [subject:<name>] sections.
        """
        config = self._new_parser()
        config["DEFAULT"] = {}

        # Get all possible keys from the model to create a complete default config
        defaults = CourierConfig.model_construct()
        for key in sorted(CourierConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        for agent in agents or []:
            config[f"{AGENT_PREFIX}{agent.name}"] = {"base_url": agent.base_url}
        for subject in subjects or []:
            section = {"agent": subject.agent.name, "query": subject.query}
            if subject.pattern:
                section["pattern"] = subject.pattern
            config[f"{SUBJECT_PREFIX}{subject.name}"] = section

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "daemon_url": section.get("daemon_url", "http://localhost:9091"),
            "download_dir": section.get("download_dir", "/downloads/complete"),
            "daemon_username": section.get("daemon_username", ""),
            "daemon_password": section.get("daemon_password", ""),
            "rpc_timeout": section.getfloat("rpc_timeout", 10.0),
            "max_session_retries": section.getint("max_session_retries", 3),
            "rss_period": section.getfloat("rss_period", 900.0),
            "history_length": section.getint("history_length", 1000),
            "feed_timeout": section.getfloat("feed_timeout", 30.0),
            "local_download_dir": section.get("local_download_dir", "downloads"),
            "scrape_min_period": section.getfloat("scrape_min_period", 2.0),
            "scrape_max_period": section.getfloat("scrape_max_period", 300.0),
            "private_channel_ttl": section.getfloat("private_channel_ttl", 86400.0),
            "gc_period": section.getfloat("gc_period", 3600.0),
            "database_path": section.get("database_path", ""),
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = CourierConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(CourierConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
