"""Application configuration and environment settings"""
from typing import Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class S3Settings(BaseModel):
    """S3 specific settings for metadata uploads"""
    bucket: str = Field(..., description="Bucket holding token metadata")
    region: str = Field(..., description="AWS region")
    endpoint_url: Optional[str] = Field(None, description="S3-compatible endpoint (R2, MinIO)")
    public_base_url: Optional[str] = Field(None, description="Public URL prefix for uploaded objects")

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Claim record storage
    CLAIM_STORE: str = Field("sql", description="Claim record backend: sql or fixr")
    DATABASE_URL: str = Field("sqlite:///builder_ids.db", description="SQLAlchemy database URL")

    # Identity provider
    NEYNAR_API_KEY: Optional[str] = Field(None, description="Neynar API key")
    NEYNAR_API_URL: str = Field("https://api.neynar.com/v2", description="Neynar API base URL")

    # Builder stats sources
    SUPABASE_URL: Optional[str] = Field(None, description="Supabase project URL")
    SUPABASE_SERVICE_KEY: Optional[str] = Field(None, description="Supabase service role key")
    TALENT_PROTOCOL_API_KEY: Optional[str] = Field(None, description="Talent Protocol API key")
    ETHOS_API_URL: str = Field("https://api.ethos.network/api/v2", description="Ethos API base URL")
    ETHOS_CLIENT: str = Field("fixr-shipyard", description="Value of the X-Ethos-Client header")

    # Fixr worker API
    FIXR_API_URL: str = Field("https://agent.fixr.nexus", description="Fixr worker API base URL")

    # Mint contract
    BUILDER_ID_CONTRACT: str = Field(
        "0xbe2940989E203FE1cfD75e0bAa1202D58A273956",
        description="Soulbound Builder ID contract address"
    )
    CHAIN_ID: int = Field(8453, description="Target chain ID (Base mainnet)")
    MINT_PRICE_WEI: int = Field(100_000_000_000_000, description="Mint price in wei (0.0001 ETH)")
    GAS_BUFFER_WEI: int = Field(100_000_000_000_000, description="Fixed gas allowance added to the mint price")

    # Claim message protocol
    PRODUCT_NAME: str = Field("Fixr", description="Product name shown in the claim message")
    CLAIM_MESSAGE_TTL_MS: int = Field(5 * 60 * 1000, description="Claim message freshness window")
    STRICT_SIGNATURE_RECOVERY: bool = Field(True, description="Recover the signer instead of checking signature shape only")

    # Wallet provider
    WALLET_MODE: str = Field("rpc", description="Wallet provider environment: rpc or local")
    WALLET_RPC_URL: str = Field("https://mainnet.base.org", description="JSON-RPC endpoint for the wallet provider")
    WALLET_PRIVATE_KEY: Optional[str] = Field(None, description="Private key for the local wallet provider")

    # Metadata storage
    METADATA_BUCKET: Optional[str] = Field(None, description="Bucket for Builder ID token metadata")
    METADATA_BASE_URL: Optional[str] = Field(None, description="Public URL prefix for metadata objects")
    AWS_REGION: str = Field(default="us-east-1", description="AWS region")
    AWS_ENDPOINT_URL: Optional[str] = Field(None, description="S3-compatible endpoint URL")

    HTTP_TIMEOUT: float = Field(15.0, description="Timeout in seconds for outbound HTTP calls")

    @property
    def s3_settings(self) -> Optional[S3Settings]:
        """Get S3 settings as a separate model, or None when uploads are disabled"""
        if not self.METADATA_BUCKET:
            return None
        return S3Settings(
            bucket=self.METADATA_BUCKET,
            region=self.AWS_REGION,
            endpoint_url=self.AWS_ENDPOINT_URL,
            public_base_url=self.METADATA_BASE_URL
        )

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True
    )

# Secrets that must never be logged
SECRET_FIELDS = {'NEYNAR_API_KEY', 'SUPABASE_SERVICE_KEY', 'TALENT_PROTOCOL_API_KEY', 'WALLET_PRIVATE_KEY'}

settings = Settings()
