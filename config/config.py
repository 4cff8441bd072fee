from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_name: str = Field("License Process API", env="APP_NAME")
    app_version: str = Field("1.0.0", env="APP_VERSION")

    # Supabase
    supabase_url: str = Field(..., env="SUPABASE_URL")
    supabase_key: str = Field(..., env="SUPABASE_KEY")
    supabase_service_role_key: str = Field("", env="SUPABASE_SERVICE_ROLE_KEY")
    supabase_table_license_processes: str = Field("license_processes", env="SUPABASE_TABLE_LICENSE_PROCESSES")
    supabase_table_companies: str = Field("companies", env="SUPABASE_TABLE_COMPANIES")
    supabase_table_process_collaborators: str = Field("process_collaborators", env="SUPABASE_TABLE_PROCESS_COLLABORATORS")
    supabase_table_process_documents: str = Field("process_documents", env="SUPABASE_TABLE_PROCESS_DOCUMENTS")

    # Storage
    storage_bucket: str = Field("docs", env="STORAGE_BUCKET")
    signed_download_url_ttl_seconds: int = Field(3600, env="SIGNED_DOWNLOAD_URL_TTL_SECONDS")
    max_upload_size_bytes: int = Field(50 * 1024 * 1024, env="MAX_UPLOAD_SIZE_BYTES")

    # Upload client
    upload_broker_url: str = Field("http://localhost:8000/v1/uploads/signed-url", env="UPLOAD_BROKER_URL")
    upload_progress_step: int = Field(10, env="UPLOAD_PROGRESS_STEP")
    upload_progress_interval_seconds: float = Field(0.2, env="UPLOAD_PROGRESS_INTERVAL_SECONDS")
    upload_progress_ceiling: int = Field(90, env="UPLOAD_PROGRESS_CEILING")

    # Licensing rules
    operating_license_type: str = Field("LO", env="OPERATING_LICENSE_TYPE")
    operating_license_expected_months: int = Field(36, env="OPERATING_LICENSE_EXPECTED_MONTHS")
    default_expected_months: int = Field(6, env="DEFAULT_EXPECTED_MONTHS")

    # HTTP
    cors_allow_origins: List[str] = Field(default=["*"], env="CORS_ALLOW_ORIGINS")
    log_level: str = Field("INFO", env="LOG_LEVEL")
    log_format: str = Field("structured", env="LOG_FORMAT")
    rate_limit_enabled: bool = Field(True, env="RATE_LIMIT_ENABLED")
    rate_limit_storage_uri: Optional[str] = Field(None, env="RATE_LIMIT_STORAGE_URI")

    class Config:
        env_file = ".env"

    def expected_months_for(self, license_type: str) -> int:
        if license_type == self.operating_license_type:
            return self.operating_license_expected_months
        return self.default_expected_months

    def storage_admin_key(self) -> str:
        return self.supabase_service_role_key or self.supabase_key

settings = Settings()

tags_metadata = [
    {
        "name": "Authentication",
        "description": "User authentication endpoints backed by Supabase Auth.",
    },
    {
        "name": "Health",
        "description": "Health-check endpoints.",
    },
    {
        "name": "Uploads",
        "description": "Signed upload credentials and download links for stored files.",
    },
    {
        "name": "Processes",
        "description": "Environmental license process management.",
    },
    {
        "name": "Collaborators",
        "description": "Process collaborators and their procuration documents.",
    },
]
