from functools import lru_cache
from azure.cosmos import CosmosClient, DatabaseProxy
from azure.identity import DefaultAzureCredential
from trainerbook.configuration.config import Config

@lru_cache(maxsize=1)
def get_database() -> DatabaseProxy:
    """
    Create the Cosmos client on first use and return the database reference.
    A key from the environment takes precedence over the Azure credential chain.
    """
    credential = Config.COSMOSDB_KEY or DefaultAzureCredential()
    client = CosmosClient(
        url=Config.COSMOSDB_ENDPOINT,
        credential=credential,
        retry_total=Config.COSMOSDB_RETRY_TOTAL,
        retry_backoff_max=Config.COSMOSDB_RETRY_BACKOFF_MAX
    )
    return client.get_database_client(Config.COSMOSDB_DATABASE_NAME)

# Dictionary to store container references
containers = {}

def get_container(container_key: str):
    """
    Provides the CosmosDB container client
    Args:
        container_key (str): Key of the container to get (availability_slots, bookings, booking_claims)
    Returns:
        Container client for the specified container
    """
    if container_key not in Config.COSMOSDB_CONTAINER_NAME:
        raise ValueError(f"Container {container_key} not found")
    if container_key not in containers:
        containers[container_key] = get_database().get_container_client(
            Config.COSMOSDB_CONTAINER_NAME[container_key]
        )
    return containers[container_key]

def get_slots_container():
    """Dependency injection function for the availability_slots container."""
    return get_container("availability_slots")

def get_bookings_container():
    """Dependency injection function for the bookings container."""
    return get_container("bookings")

def get_claims_container():
    """Dependency injection function for the booking_claims container."""
    return get_container("booking_claims")
