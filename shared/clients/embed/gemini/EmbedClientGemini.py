from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import ProviderParseError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientGemini(EmbedClientInterface):
    """Google Gemini embedding backend (generativelanguage REST API).

    Always uses batchEmbedContents so one request serves any number of texts.
    The output dimension is requested explicitly via outputDimensionality.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self._config["BASE_URL"]
        self._api_key = self._config["API_KEY"]

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Gemini"

    def _get_model_path(self) -> str:
        return self.embed_model if self.embed_model.startswith("models/") else f"models/{self.embed_model}"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://generativelanguage.googleapis.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-goog-api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/v1beta/{self._get_model_path()}"

    def get_endpoint_embedding(self) -> str:
        return f"/v1beta/{self._get_model_path()}:batchEmbedContents"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the Gemini batch embedding request body.

        Returns:
            dict: {"requests": [{"model": ..., "content": {"parts": [{"text": ...}]}, "outputDimensionality": ...}]}
        """
        model = self._get_model_path()
        return {
            "requests": [
                {
                    "model": model,
                    "content": {"parts": [{"text": text}]},
                    "outputDimensionality": self.embed_dimension,
                }
                for text in texts
            ]
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        embeddings = response_data.get("embeddings")
        if not embeddings:
            raise ProviderParseError(
                "Gemini response does not contain embeddings. "
                f"Response keys: {list(response_data.keys())}"
            )
        vectors: list[list[float]] = []
        for embedding in embeddings:
            values = (embedding or {}).get("values")
            if not values:
                raise ProviderParseError("Gemini response contains an embedding without values.")
            vectors.append([float(v) for v in values])
        return vectors
