import os
from typing import Optional

from ..settings import get_data_dir

WHISPER = "whisper"
TRANSDUCER = "transducer"


def get_models_dir() -> str:
    return os.path.join(get_data_dir(), "models")


def resolve_model_path(model_id: str) -> str:
    if os.path.isabs(model_id):
        return model_id
    return os.path.join(get_models_dir(), model_id)


def find_file_by_suffix(directory: str, *suffixes: str) -> Optional[str]:
    try:
        for filename in sorted(os.listdir(directory)):
            for suffix in suffixes:
                if filename.endswith(suffix):
                    return os.path.join(directory, filename)
    except OSError:
        pass
    return None


def find_file_exact(directory: str, candidates: list[str]) -> Optional[str]:
    for name in candidates:
        path = os.path.join(directory, name)
        if os.path.exists(path):
            return path
    return None


def is_valid_whisper_model(model_path: str) -> bool:
    encoder = find_file_by_suffix(model_path, "-encoder.onnx", "-encoder.int8.onnx")
    decoder = find_file_by_suffix(model_path, "-decoder.onnx", "-decoder.int8.onnx")
    tokens = find_file_by_suffix(model_path, "-tokens.txt", "tokens.txt")
    return all([encoder, decoder, tokens])


def is_valid_transducer_model(model_path: str) -> bool:
    files = (
        find_file_exact(model_path, ["encoder.onnx", "encoder.int8.onnx", "encoder.fp16.onnx"]),
        find_file_exact(model_path, ["decoder.onnx", "decoder.int8.onnx", "decoder.fp16.onnx"]),
        find_file_exact(model_path, ["joiner.onnx", "joiner.int8.onnx", "joiner.fp16.onnx"]),
        find_file_exact(model_path, ["tokens.txt"]),
    )
    return all(files)


def detect_model_type(model_path: str) -> Optional[str]:
    """Classify a model directory by the ONNX files it holds."""
    if not os.path.isdir(model_path):
        return None
    if is_valid_transducer_model(model_path):
        return TRANSDUCER
    if is_valid_whisper_model(model_path):
        return WHISPER
    return None
