# leafscan/core/config.py
import os
from dotenv import load_dotenv

# Load .env once at startup
load_dotenv()


def _env_bool(name: str, default: str = "0") -> bool:
    v = str(os.environ.get(name, default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def _env_list(name: str, default: str) -> list:
    return [x.strip() for x in str(os.environ.get(name, default)).split(",") if x.strip()]


class Config:
    # =========================
    # APP / SECURITY
    # =========================
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    # BASE_DIR = repository root
    BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))

    # =========================
    # PREPROCESSING
    # =========================
    IMG_WIDTH = int(os.environ.get("IMG_WIDTH", 256))
    IMG_HEIGHT = int(os.environ.get("IMG_HEIGHT", 512))
    IMG_CHANNELS = 3
    JPEG_QUALITY = int(os.environ.get("JPEG_QUALITY", 80))  # compress 0.8

    # =========================
    # MODELS (TFLite)
    # =========================
    MODEL_DIR = os.environ.get("MODEL_DIR", os.path.join(BASE_DIR, "models"))

    SEG_RESNET_PATH = os.environ.get(
        "SEG_RESNET_PATH",
        os.path.join(MODEL_DIR, "segmentation", "resnet.tflite"),
    )
    SEG_DISEASE_PATH = os.environ.get(
        "SEG_DISEASE_PATH",
        os.path.join(MODEL_DIR, "segmentation", "disease.tflite"),
    )
    SEG_BIOTIC_PATH = os.environ.get(
        "SEG_BIOTIC_PATH",
        os.path.join(MODEL_DIR, "segmentation", "biotic.tflite"),
    )
    CLSF_MODEL_PATH = os.environ.get(
        "CLSF_MODEL_PATH",
        os.path.join(MODEL_DIR, "classification", "adagrad.tflite"),
    )

    # uint8 (0..255) or float32 (0..1), per model family
    SEG_INPUT_DTYPE = os.environ.get("SEG_INPUT_DTYPE", "uint8")
    CLSF_INPUT_DTYPE = os.environ.get("CLSF_INPUT_DTYPE", "uint8")

    # Ordered output labels of each segmentation model
    SEG_LABELS = {
        "resnet": _env_list("SEG_RESNET_LABELS", "normal,disease,biotic"),
        "disease": _env_list("SEG_DISEASE_LABELS", "normal,disease"),
        "biotic": _env_list("SEG_BIOTIC_LABELS", "normal,biotic"),
    }

    CLASSIFIER_LABELS = _env_list(
        "CLASSIFIER_LABELS",
        "Cercospora,Healthy,Leaf Miner,Phoma,Rust",
    )

    # =========================
    # FUSION
    # =========================
    # Minimum confidence for a non-normal vote to override normal
    FUSION_THRESHOLD = float(os.environ.get("FUSION_THRESHOLD", 0.5))

    INFERENCE_WORKERS = int(os.environ.get("INFERENCE_WORKERS", 4))

    # =========================
    # LEAF PRESENCE GATE
    # =========================
    GATE_ENABLED = _env_bool("GATE_ENABLED", "0")
    GATE_URL = os.environ.get("GATE_URL", "https://detect.roboflow.com/leaf-detection-r0kih/2")
    GATE_API_KEY = os.environ.get("GATE_API_KEY", "")
    GATE_TIMEOUT_SECONDS = float(os.environ.get("GATE_TIMEOUT_SECONDS", 10))
    GATE_MAX_RETRIES = int(os.environ.get("GATE_MAX_RETRIES", 1))
    # "abort" or "proceed" when the gate cannot be reached
    GATE_UNAVAILABLE_POLICY = os.environ.get("GATE_UNAVAILABLE_POLICY", "abort")
    GATE_REJECT_LABEL = os.environ.get("GATE_REJECT_LABEL", "NotCoffee Leaf")

    REJECTION_MESSAGE = "Not an image leaf, please try again."

    # =========================
    # RAW OUTPUT EXPORT (CSV)
    # =========================
    SCAN_EXPORT_ENABLED = _env_bool("SCAN_EXPORT_ENABLED", "0")
    SCAN_EXPORT_PATH = os.environ.get(
        "SCAN_EXPORT_PATH",
        os.path.join(BASE_DIR, "storage", "scan_outputs.csv"),
    )

    # =========================
    # DATABASE (MySQL by default)
    # =========================
    DB_HOST = os.environ.get("DB_HOST", "localhost")
    DB_PORT = os.environ.get("DB_PORT", "3306")
    DB_NAME = os.environ.get("DB_NAME", "leafscan_db")
    DB_USER = os.environ.get("DB_USER", "root")
    DB_PASSWORD = os.environ.get("DB_PASSWORD", "")

    @classmethod
    def database_url(cls) -> str:
        """
        SQLAlchemy connection string. DATABASE_URL wins when set.
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return url
        return (
            f"mysql+pymysql://{cls.DB_USER}:{cls.DB_PASSWORD}"
            f"@{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}"
        )
