from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).parents[1]


class Settings(BaseSettings):
    """Manages library-wide configuration settings using Pydantic.
    This class centralizes the defaults used by learners, wrappers and the
    tuning engine. It inherits from `pydantic_settings.BaseSettings`, which
    allows it to automatically read settings from environment variables and a
    `.env` file located at the project root.
    The settings are structured into logical groups:
    - Directory Paths: where log files are written.
    - Randomness: the seed used when a caller does not pass one.
    - Execution: how bagging iterations and tuning trials are dispatched.
    - Tuning: per-trial deadline and failure policy.
    - Logging: console level, file sink and Rich toggle.
    Attributes:
        ROOT_DIR (Path): The absolute path to the project's root directory.
        LOGS_DIR (Path): Path to the directory for log files.
        DEFAULT_SEED (int | None): Seed used when `train` gets no seed. `None`
            draws fresh OS entropy; the global numpy RNG is never used.
        EXECUTOR (str): Executor kind for independent units of work.
        N_JOBS (int): Worker count for the executor.
        TRIAL_TIMEOUT (float | None): Deadline in seconds for one tuning trial.
        ON_TRIAL_ERROR (str): `impute` scores a failed trial with the impute
            value and continues; `raise` aborts the tuning run.
        BAGGING_ITERS (int): Default `bw.iters` of the bagging wrapper.
        CV_FOLDS (int): Default number of folds used by the demo workflow.
        SHOW_PROGRESS (bool): Whether executors draw progress bars.
        LOG_LEVEL (str): Minimum level of the console sink.
        LOG_TO_FILE (bool): Whether a daily rotating file sink is added under
            `LOGS_DIR`. Off by default; the CLI turns it on with `--log-file`.
        DISABLE_RICH (bool): Plain stderr console instead of the Rich handler.
    """

    ROOT_DIR: Path = ROOT_DIR
    LOGS_DIR: Path = ROOT_DIR / "logs"

    DEFAULT_SEED: int | None = None

    EXECUTOR: Literal["sequential", "thread", "process", "joblib"] = "sequential"
    N_JOBS: int = 1

    TRIAL_TIMEOUT: float | None = None
    ON_TRIAL_ERROR: Literal["impute", "raise"] = "impute"

    BAGGING_ITERS: int = 10
    CV_FOLDS: int = 3

    SHOW_PROGRESS: bool = False

    LOG_LEVEL: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"] = "INFO"
    LOG_TO_FILE: bool = False
    DISABLE_RICH: bool = False

    # Pydantic -> .env
    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("N_JOBS", "BAGGING_ITERS")
    @classmethod
    def positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("deve ser >= 1")
        return v

    @field_validator("CV_FOLDS")
    @classmethod
    def at_least_two_folds(cls, v: int) -> int:
        if v < 2:
            raise ValueError("CV precisa de pelo menos 2 folds")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator("TRIAL_TIMEOUT")
    @classmethod
    def positive_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("TRIAL_TIMEOUT deve ser positivo")
        return v


settings = Settings()
