from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.errors import EmptyResponseError
from shared.helper.HelperConfig import HelperConfig

# Only the beginning of a page goes into the prompt
SUMMARY_MAX_INPUT_CHARS = 3000

SUMMARY_SYSTEM_PROMPT = (
    "You write index entries for a semantic search engine over bookmarked book and paper pages. "
    "Answer with exactly three lines and nothing else."
)

SUMMARY_PROMPT_TEMPLATE = """Create search index text for the page below.

Output format:
Line 1: the subject of the page in one sentence (e.g. "Explains how X works").
Line 2: 5-10 important keywords, comma separated.
Line 3: questions a reader might search for (e.g. "What is X", "How to do X").
{excerpt_section}
Page text:
{page_text}
"""


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL")
        self.temperature = helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.2)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    def get_summary_messages(self, raw_text: str, highlight_excerpts: list[str] | None = None) -> list[dict]:
        """Build the chat messages asking for a search-oriented page summary.

        Highlighted excerpts are listed before the page text and marked as
        the part to prioritise.

        Args:
            raw_text (str): Extracted page text.
            highlight_excerpts (list[str] | None): Text the user highlighted on the page.

        Returns:
            list[dict]: OpenAI-format messages.
        """
        excerpt_section = ""
        if highlight_excerpts:
            excerpt_section = "\nHighlighted passages (give these priority):\n" + "\n".join(highlight_excerpts) + "\n"
        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            excerpt_section=excerpt_section,
            page_text=raw_text[:SUMMARY_MAX_INPUT_CHARS],
        )
        return [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ProviderParseError: If the response does not have the expected shape.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Returns:
            str: The assistant reply text.

        Raises:
            RateLimitedError: If the backend rejected the request for quota reasons.
            ProviderUnavailableError: If the request fails or the response is malformed.
        """
        body = self.get_chat_payload(messages)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        return self.extract_chat_response(self._parse_json(response))

    async def do_summarize(self, raw_text: str, highlight_excerpts: list[str] | None = None) -> str:
        """Turn raw page text into a short search-oriented summary.

        Args:
            raw_text (str): Extracted page text.
            highlight_excerpts (list[str] | None): Text the user highlighted on the page.

        Returns:
            str: The summary, stripped of surrounding whitespace.

        Raises:
            EmptyResponseError: If the backend answered without any text.
            RateLimitedError: If the backend rejected the request for quota reasons.
            ProviderUnavailableError: If the request fails.
        """
        reply = await self.do_chat(self.get_summary_messages(raw_text, highlight_excerpts))
        summary = reply.strip()
        if not summary:
            raise EmptyResponseError(f"{self.get_engine_name()} returned an empty summary.")
        return summary
