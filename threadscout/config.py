from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter / OpenAI-compatible generation
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""
    rewrite_model: str = ""  # optional override for query rewriting only
    llm_max_tokens: int = 4096

    # Embeddings
    embedding_backend: str = "local"  # local | openai
    local_embed_model: str = "BAAI/bge-small-en-v1.5"
    local_embed_batch_size: int = 32
    openai_embed_model: str = "text-embedding-3-small"
    openai_embed_api_key: str = ""
    openai_embed_base_url: str = ""

    # Search provider
    search_provider: str = "google_pse"  # google_pse | brave | tavily
    search_fallback_provider: str = ""  # empty disables the fallback
    google_pse_api_key: str = ""
    google_pse_engine_id: str = ""
    brave_api_key: str = ""
    tavily_api_key: str = ""
    search_language: str = "en"
    search_engines: str = ""
    search_site_hint: str = "Reddit"
    search_num_results: int = 20

    # Discussion sites
    discussion_domains: str = "reddit.com"

    # Fallback fetch chain
    fetch_strategy_order: str = "cache_proxy,archive_mirror,direct,alternate_host"
    cache_proxy_url: str = "https://api.allorigins.win/raw?url={url_encoded}"
    archive_mirror_url: str = "https://web.archive.org/web/{url}"
    fetch_min_content_bytes: int = 5000
    fetch_block_markers: str = "access denied|captcha|whoa there, pardner|network policy"  # pipe separated
    proxy_timeout_seconds: float = 15.0
    direct_timeout_seconds: float = 10.0
    direct_max_attempts: int = 3
    direct_backoff_seconds: float = 2.0

    # Thread scoring
    score_candidate_limit: int = 20
    score_top_k: int = 10
    score_timeout_seconds: float = 5.0
    score_batch_size: int = 3
    score_batch_delay_seconds: float = 3.0

    # Document loading
    document_batch_size: int = 2
    document_batch_delay_seconds: float = 5.0
    document_chunk_size: int = 1000
    document_chunk_overlap: int = 200
    link_group_max_docs: int = 10
    usable_content_min_chars: int = 100
    min_usable_documents: int = 2

    # Reranking
    rerank_enabled: bool = True
    rerank_threshold: float = 0.3

    # Context assembly
    context_max_documents: int = 8
    discussion_char_cap: int = 6000
    default_char_cap: int = 2000

    # Uploaded files
    uploads_dir: str = "uploads"

    # Diagnostics
    diagnostics_enabled: bool = False
    diagnostics_html_dir: str = "debug"
    diagnostics_log_dir: str = "logs"

    # App
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def discussion_domain_list(self) -> list[str]:
        return [d.strip().lower() for d in self.discussion_domains.split(",") if d.strip()]

    @property
    def fetch_strategy_list(self) -> list[str]:
        return [s.strip().lower() for s in self.fetch_strategy_order.split(",") if s.strip()]

    @property
    def block_marker_list(self) -> list[str]:
        return [m.strip().lower() for m in self.fetch_block_markers.split("|") if m.strip()]

    @property
    def search_engine_list(self) -> list[str]:
        return [e.strip() for e in self.search_engines.split(",") if e.strip()]


settings = Settings()
