from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
	port: int = 3000
	volume_path: str = "./Haptic"
	root_name: str = "Haptic"
	cors_allow_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
	log_file: str = "notestore.log"
	# Per-observer backlog before events are dropped for that observer
	ws_queue_size: int = 100
	ws_send_timeout: float = 5.0

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"


settings = Settings()
