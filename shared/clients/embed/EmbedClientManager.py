from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager(ClientManager):
    """Instantiates the embedding client named by EMBED_ENGINE (e.g. "ollama", "gemini")."""

    client_type = "embed"
    class_prefix = "Embed"

    def get_client(self) -> EmbedClientInterface:
        return self.client
