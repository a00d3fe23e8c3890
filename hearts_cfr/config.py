"""hearts_cfr/config.py"""

from typing import List, Dict, TypeVar, Optional, Union
from dataclasses import dataclass, field, fields as dataclass_fields
import os
import logging
import re
import yaml

from .encoding import INPUT_DIM

T = TypeVar("T")

# --- Configuration Dataclasses ---


# Helper to get nested dict values safely
def get_nested(data: Dict, keys: List[str], default: T) -> T:
    """Safely retrieve a nested value from a dict."""
    current = data
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current.get(key)
        else:
            return default
    # Handle case where the final value retrieved is None, but default isn't None
    if current is None and default is not None:
        return default
    return current  # type: ignore


def parse_human_readable_size(size_str: Union[str, int]) -> int:
    """Parses a human-readable size string (e.g., '1GB', '500MB', '1024') into bytes."""
    if isinstance(size_str, int):
        return size_str
    if not isinstance(size_str, str):
        raise ValueError(f"Invalid size format: {size_str}. Must be int or string.")

    size_str = size_str.upper().strip()
    match = re.fullmatch(r"(\d+)\s*(KB|MB|GB|TB)?", size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    value = int(match.group(1))
    unit = match.group(2)

    if unit == "KB":
        value *= 1024
    elif unit == "MB":
        value *= 1024**2
    elif unit == "GB":
        value *= 1024**3
    elif unit == "TB":
        value *= 1024**4
    # If unit is None, value is already in bytes
    return value


def parse_count(count: Union[str, int]) -> int:
    """Parses a count with an optional decimal suffix (e.g., '10M', '500K', '2000')."""
    if isinstance(count, int):
        return count
    if not isinstance(count, str):
        raise ValueError(f"Invalid count format: {count}. Must be int or string.")

    count_str = count.upper().replace("_", "").strip()
    match = re.fullmatch(r"(\d+)\s*(K|M|B)?", count_str)
    if not match:
        raise ValueError(f"Invalid count format: {count}")

    value = int(match.group(1))
    multiplier = {None: 1, "K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
    return value * multiplier[match.group(2)]


def parse_num_threads(num_threads: Union[str, int]) -> int:
    """Parse the number of traversal threads; 'auto' or 0 uses the CPU count."""
    if isinstance(num_threads, str):
        if num_threads.lower() == "auto":
            num_threads = 0
        else:
            try:
                num_threads = int(num_threads)
            except ValueError:
                raise ValueError(
                    f"num_threads string '{num_threads}' must be 'auto' or an integer."
                ) from None
    if not isinstance(num_threads, int) or num_threads < 0:
        raise ValueError(
            f"num_threads must be 'auto' or a non-negative integer. Got: {num_threads}"
        )
    if num_threads == 0:
        return os.cpu_count() or 1
    return num_threads


@dataclass
class GenerationConfig:
    """Parameters controlling sample generation."""

    num_deals_per_iteration: int = 8000
    deal_batch_size: int = 200  # deals advanced together by the inference driver
    inference_batch_size: int = 50000  # max information sets per network forward pass
    sample_decay: float = 1.5  # exact expansion probability is D / (D + depth)
    num_threads: int = 1  # threads applying continuations; "auto" in YAML
    seed: int = 0


@dataclass
class ModelConfig:
    """Advantage network architecture."""

    hidden_size: int = INPUT_DIM * 2
    num_hidden_layers: int = 4
    dropout: float = 0.1
    device: str = "auto"  # "auto" = cuda if available, else cpu


@dataclass
class TrainingConfig:
    """Parameters controlling the training loop."""

    num_iterations: int = 50
    learning_rate: float = 1e-3
    num_epochs: int = 100
    batch_size: int = 100_000
    sub_batch_size: int = 10_000  # gradient accumulation chunk
    reservoir_capacity: int = 10_000_000  # can be string like "10M"
    num_evaluation_deals: int = 2000


@dataclass
class PersistenceConfig:
    """Configuration for saving and loading models and samples."""

    model_dir: str = "models"


@dataclass
class LoggingConfig:
    """Settings for configuring logging behavior."""

    log_level_file: str = "DEBUG"  # Logging level for the log file
    log_level_console: str = "INFO"  # Logging level for the console
    log_dir: str = "logs"
    log_file_prefix: str = "hearts_cfr"
    log_max_bytes: int = 9 * 1024 * 1024  # can be string like "9MB"
    log_backup_count: int = 999


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_DEVICES = ("auto", "cpu", "cuda")


@dataclass
class Config:
    """Root configuration object."""

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    _source_path: Optional[str] = None  # Internal field to store config path

    def validate(self) -> "Config":
        """
        Checks value ranges.

        Raises:
            ValueError: On the first invalid value found.
        """
        gen = self.generation
        if gen.num_deals_per_iteration <= 0:
            raise ValueError("generation.num_deals_per_iteration must be positive")
        if gen.deal_batch_size <= 0:
            raise ValueError("generation.deal_batch_size must be positive")
        if gen.inference_batch_size <= 0:
            raise ValueError("generation.inference_batch_size must be positive")
        if gen.sample_decay <= 0:
            raise ValueError("generation.sample_decay must be positive")
        if gen.num_threads < 1:
            raise ValueError("generation.num_threads must be at least 1")
        if gen.seed < 0:
            raise ValueError("generation.seed must be non-negative")

        model = self.model
        if model.hidden_size <= 0:
            raise ValueError("model.hidden_size must be positive")
        if model.num_hidden_layers < 0:
            raise ValueError("model.num_hidden_layers must be non-negative")
        if not 0.0 <= model.dropout < 1.0:
            raise ValueError("model.dropout must be in [0, 1)")
        if model.device not in _DEVICES:
            raise ValueError(f"model.device must be one of {_DEVICES}, got {model.device!r}")

        train = self.training
        if train.num_iterations <= 0:
            raise ValueError("training.num_iterations must be positive")
        if train.learning_rate <= 0:
            raise ValueError("training.learning_rate must be positive")
        if train.num_epochs <= 0:
            raise ValueError("training.num_epochs must be positive")
        if train.batch_size <= 0 or train.sub_batch_size <= 0:
            raise ValueError("training batch sizes must be positive")
        if train.sub_batch_size > train.batch_size:
            raise ValueError("training.sub_batch_size cannot exceed training.batch_size")
        if train.reservoir_capacity <= 0:
            raise ValueError("training.reservoir_capacity must be positive")
        if train.num_evaluation_deals < 0:
            raise ValueError("training.num_evaluation_deals must be non-negative")

        for name in ("log_level_file", "log_level_console"):
            level = getattr(self.logging, name)
            if str(level).upper() not in _LOG_LEVELS:
                raise ValueError(f"logging.{name} must be one of {_LOG_LEVELS}, got {level!r}")
        if self.logging.log_backup_count < 0:
            raise ValueError("logging.log_backup_count must be non-negative")
        return self


def load_config(
    config_path: str = "config.yaml",
) -> Config:
    """Loads configuration from a YAML file."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
            if config_dict is None:
                logging.warning(
                    "Config file '%s' is empty or invalid. Using default configuration.",
                    config_path,
                )
                config_dict = {}

            # Warn on unknown keys in config sections
            _SECTION_CLASSES = {
                "generation": GenerationConfig,
                "model": ModelConfig,
                "training": TrainingConfig,
                "persistence": PersistenceConfig,
                "logging": LoggingConfig,
            }
            for section_name in config_dict:
                if section_name not in _SECTION_CLASSES:
                    logging.warning("Unknown config section '%s'; it will be ignored", section_name)
            for section_name, section_cls in _SECTION_CLASSES.items():
                section_data = config_dict.get(section_name, {})
                if isinstance(section_data, dict):
                    known_keys = {f.name for f in dataclass_fields(section_cls)}
                    for key in section_data:
                        if key not in known_keys:
                            logging.warning(
                                "Unknown %s key '%s'; it will be ignored",
                                section_name,
                                key,
                            )

            # --- Parse sections ---
            generation_config = GenerationConfig(
                num_deals_per_iteration=get_nested(
                    config_dict,
                    ["generation", "num_deals_per_iteration"],
                    GenerationConfig.num_deals_per_iteration,
                ),
                deal_batch_size=get_nested(
                    config_dict,
                    ["generation", "deal_batch_size"],
                    GenerationConfig.deal_batch_size,
                ),
                inference_batch_size=get_nested(
                    config_dict,
                    ["generation", "inference_batch_size"],
                    GenerationConfig.inference_batch_size,
                ),
                sample_decay=float(
                    get_nested(
                        config_dict,
                        ["generation", "sample_decay"],
                        GenerationConfig.sample_decay,
                    )
                ),
                num_threads=parse_num_threads(
                    get_nested(
                        config_dict,
                        ["generation", "num_threads"],
                        GenerationConfig.num_threads,
                    )
                ),
                seed=get_nested(config_dict, ["generation", "seed"], GenerationConfig.seed),
            )

            model_config = ModelConfig(
                hidden_size=get_nested(
                    config_dict, ["model", "hidden_size"], ModelConfig.hidden_size
                ),
                num_hidden_layers=get_nested(
                    config_dict,
                    ["model", "num_hidden_layers"],
                    ModelConfig.num_hidden_layers,
                ),
                dropout=float(
                    get_nested(config_dict, ["model", "dropout"], ModelConfig.dropout)
                ),
                device=str(
                    get_nested(config_dict, ["model", "device"], ModelConfig.device)
                ).lower(),
            )

            training_config = TrainingConfig(
                num_iterations=get_nested(
                    config_dict,
                    ["training", "num_iterations"],
                    TrainingConfig.num_iterations,
                ),
                learning_rate=float(
                    get_nested(
                        config_dict,
                        ["training", "learning_rate"],
                        TrainingConfig.learning_rate,
                    )
                ),
                num_epochs=get_nested(
                    config_dict, ["training", "num_epochs"], TrainingConfig.num_epochs
                ),
                batch_size=parse_count(
                    get_nested(
                        config_dict, ["training", "batch_size"], TrainingConfig.batch_size
                    )
                ),
                sub_batch_size=parse_count(
                    get_nested(
                        config_dict,
                        ["training", "sub_batch_size"],
                        TrainingConfig.sub_batch_size,
                    )
                ),
                reservoir_capacity=parse_count(
                    get_nested(
                        config_dict,
                        ["training", "reservoir_capacity"],
                        TrainingConfig.reservoir_capacity,
                    )
                ),
                num_evaluation_deals=get_nested(
                    config_dict,
                    ["training", "num_evaluation_deals"],
                    TrainingConfig.num_evaluation_deals,
                ),
            )

            logging_config = LoggingConfig(
                log_level_file=get_nested(
                    config_dict,
                    ["logging", "log_level_file"],
                    LoggingConfig.log_level_file,
                ),
                log_level_console=get_nested(
                    config_dict,
                    ["logging", "log_level_console"],
                    LoggingConfig.log_level_console,
                ),
                log_dir=get_nested(
                    config_dict, ["logging", "log_dir"], LoggingConfig.log_dir
                ),
                log_file_prefix=get_nested(
                    config_dict,
                    ["logging", "log_file_prefix"],
                    LoggingConfig.log_file_prefix,
                ),
                log_max_bytes=parse_human_readable_size(
                    get_nested(
                        config_dict,
                        ["logging", "log_max_bytes"],
                        LoggingConfig.log_max_bytes,
                    )
                ),
                log_backup_count=get_nested(
                    config_dict,
                    ["logging", "log_backup_count"],
                    LoggingConfig.log_backup_count,
                ),
            )

            # --- Assemble Main Config ---
            cfg = Config(
                generation=generation_config,
                model=model_config,
                training=training_config,
                persistence=PersistenceConfig(
                    model_dir=get_nested(
                        config_dict,
                        ["persistence", "model_dir"],
                        PersistenceConfig.model_dir,
                    )
                ),
                logging=logging_config,
                _source_path=os.path.abspath(config_path),
            )
            return cfg

    except FileNotFoundError:
        logging.error(
            "Config file '%s' not found. Using default configuration.", config_path
        )
        return Config(_source_path=None)
    except (TypeError, KeyError, AttributeError, yaml.YAMLError, ValueError) as e:
        logging.exception(
            "Error loading or parsing config file '%s': %s. Check structure/types. Using default config.",
            config_path,
            e,
        )
        return Config(_source_path=None)
    except IOError as e:
        logging.exception(
            "IOError loading config file '%s': %s. Using default config.", config_path, e
        )
        return Config(_source_path=None)
