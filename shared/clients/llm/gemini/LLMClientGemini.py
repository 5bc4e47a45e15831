from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import ProviderParseError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientGemini(LLMClientInterface):
    """Google Gemini generateContent backend."""

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
        return self.chat_model if self.chat_model.startswith("models/") else f"models/{self.chat_model}"

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

    def _get_endpoint_chat(self) -> str:
        return f"/v1beta/{self._get_model_path()}:generateContent"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Translate OpenAI-format messages into a Gemini generateContent body.

        System messages become systemInstruction; assistant turns use the "model" role.
        """
        system_parts = [{"text": m["content"]} for m in messages if m.get("role") == "system"]
        contents = [
            {
                "role": "model" if m.get("role") == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m.get("role") != "system"
        ]
        payload: dict = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature},
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        candidates = response_data.get("candidates")
        if not candidates:
            raise ProviderParseError(
                "Gemini response does not contain candidates. "
                "Response keys: %s" % list(response_data.keys())
            )
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        # an empty join means the model produced nothing; do_summarize turns that into EmptyResponseError
        return "".join(part.get("text", "") for part in parts)
