from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager):
    """Instantiates the vector index client named by RAG_ENGINE (e.g. "qdrant")."""

    client_type = "rag"
    class_prefix = "RAG"

    def get_client(self) -> RAGClientInterface:
        return self.client
