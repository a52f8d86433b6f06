"""
Taxonomia de erros do detector.

- ModelUnavailable: sessão ONNX não pôde ser criada (absorvido → modo fallback)
- UnsupportedFileType: arquivo não é imagem nem vídeo (mostrado ao usuário)
- DecodeFailure / FrameTimeout: falha ao decodificar ou buscar o frame
- AnalysisCancelled: requisição cancelada via cancel_event
- MalformedModelOutput: saída do modelo com tamanho diferente de 1 ou 2
"""

from __future__ import annotations


class DetectorError(Exception):
    """Base de todos os erros do pacote."""


class ModelUnavailable(DetectorError):
    pass


class UnsupportedFileType(DetectorError, ValueError):
    pass


class DecodeFailure(DetectorError):
    pass


class FrameTimeout(DecodeFailure):
    pass


class AnalysisCancelled(DetectorError):
    pass


class MalformedModelOutput(DetectorError):
    def __init__(self, length: int) -> None:
        super().__init__(
            f"Saída do modelo com {length} valores (esperado 1 ou 2)"
        )
        self.length = length
