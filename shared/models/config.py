from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can be booted.

    Attributes:
        env_key (str): The raw key, prefixed with "<TYPE>_<ENGINE>_" by the client (e.g. "BASE_URL").
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | bool | list | None): Value used when the variable is unset. None marks the setting as required.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | bool | list | None = None
