import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    # Azure CosmosDB Configuration
    COSMOSDB_ENDPOINT = os.getenv("COSMOS_DB_ENDPOINT")
    COSMOSDB_KEY = os.getenv("COSMOS_DB_KEY")
    COSMOSDB_DATABASE_NAME = os.getenv("COSMOS_DB_DATABASE", "trainerbook")
    COSMOSDB_CONTAINER_NAME = {
        "availability_slots": os.getenv("COSMOS_CONTAINERS_AVAILABILITY_SLOTS", "availability_slots"),
        "bookings": os.getenv("COSMOS_CONTAINERS_BOOKINGS", "bookings"),
        "booking_claims": os.getenv("COSMOS_CONTAINERS_BOOKING_CLAIMS", "booking_claims")
    }

    # Retry policy handed to the Cosmos SDK for throttled/transient failures
    COSMOSDB_RETRY_TOTAL = int(os.getenv("COSMOS_RETRY_TOTAL", "5"))
    COSMOSDB_RETRY_BACKOFF_MAX = int(os.getenv("COSMOS_RETRY_BACKOFF_MAX", "15"))

    # Identity provider (JWT issuer) configuration
    AZURE_ENTRAID_TENANT_SUBDOMAIN = os.getenv("AZURE_ENTRAID_TENANT_SUBDOMAIN")
    AZURE_ENTRAID_TENANT_ID = os.getenv("AZURE_ENTRAID_TENANT_ID")
    AZURE_ENTRAID_CLIENT_ID = os.getenv("AZURE_ENTRAID_CLIENT_ID")

    # Application Insights
    APPLICATIONINSIGHTS_CONNECTION_STRING = os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY")

    # Scheduling
    BULK_CREATE_DELAY_SECONDS = float(os.getenv("BULK_CREATE_DELAY_SECONDS", "0.05"))
    DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "60"))
    MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "92"))

    # A claim without a booking is only taken over once it is this old, so an
    # in-flight create is never overtaken
    CLAIM_STALE_SECONDS = int(os.getenv("CLAIM_STALE_SECONDS", "60"))
