# Infrastructure clients
from clients.document_store import DocumentStore, DocumentStoreError, DuplicateKeyError
from clients.memory_store import InMemoryDocumentStore
from clients.mongo_client import MongoDocumentStore
from clients.vault_client import (
    VaultClient,
    get_signing_key,
    get_mongodb_config,
    get_email_config,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
