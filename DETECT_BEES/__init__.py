"""
DETECT-BEES — detector de deepfake por frame único (ONNX).

Módulos:
- frame_acquisition: imagem ou frame do meio do vídeo → RGBA 224x224 (OpenCV)
- tensor_builder: RGBA interleaved → tensor [1, 3, 224, 224] em [-1, 1]
- model_loader: InferenceContext, sessão onnxruntime, fallback sintético
- score_calibrator: softmax estável + recalibração [0.1, 0.6] → [0, 1]
- risk_classifier: risco → Low / Moderate / High
- run_detector: orquestrador e CLI (detect-bees)
- offline_eval: validação offline (dev-only, requer pandas + scikit-learn)
"""

__version__ = "1.0.0"
