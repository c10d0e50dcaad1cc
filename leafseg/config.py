import os

DEVICE = os.getenv("DEVICE", "cpu")
MODEL_THREADS = int(os.getenv("MODEL_THREADS", "4"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LEAF_SEG_WEIGHTS = os.getenv("LEAF_SEG_WEIGHTS", "models/espnet-leaf.onnx").strip()
DISEASE_SEG_WEIGHTS = os.getenv("DISEASE_SEG_WEIGHTS", "models/espnet-disease.onnx").strip()

# Both models share one input resolution and one normalization
INPUT_SIZE = int(os.getenv("INPUT_SIZE", "256"))
INPUT_LAYOUT = os.getenv("INPUT_LAYOUT", "nhwc").strip().lower()   # nhwc | nchw
NORM_MEAN = float(os.getenv("NORM_MEAN", "0.0"))
NORM_STD = float(os.getenv("NORM_STD", "1.0"))                     # 0..255 float input

# Fixed mask boundary: above 0.5 is positive, exactly 0.5 is negative
THRESH_LEAF = 0.5
THRESH_DISEASE = 0.5

BRIGHTEN_GAIN = float(os.getenv("BRIGHTEN_GAIN", "1.1"))
DARKEN_FACTOR = float(os.getenv("DARKEN_FACTOR", "0.5"))

SEVERITY_RULES_CSV = os.getenv("SEVERITY_RULES_CSV", "").strip()

# HSV ranges for the model-free debug heuristics
VEG_H_MIN = int(os.getenv("VEG_H_MIN", "30"))    # green
VEG_H_MAX = int(os.getenv("VEG_H_MAX", "90"))
VEG_S_MIN = int(os.getenv("VEG_S_MIN", "40"))
VEG_V_MIN = int(os.getenv("VEG_V_MIN", "40"))

BRN_H_MIN = int(os.getenv("BRN_H_MIN", "10"))    # brown / rust
BRN_H_MAX = int(os.getenv("BRN_H_MAX", "25"))
BRN_S_MIN = int(os.getenv("BRN_S_MIN", "20"))
BRN_V_MAX = int(os.getenv("BRN_V_MAX", "180"))
