from typing import Iterable, Optional, Sequence


class ValidationError(Exception):
    """合成リクエストのバリデーションエラーを表す例外。"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        line_number: Optional[int] = None,
        column_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.line_number = line_number
        self.column_number = column_number

    def __str__(self):
        if self.line_number is not None:
            return f"Validation Error: {self.message} (Line: {self.line_number}, Column: {self.column_number})"
        return f"Validation Error: {self.message}"


class MissingPrimaryStream(ValidationError):
    """シーンが空、またはベース動画に映像ストリームが無い場合の例外。"""


class MissingInputFile(ValidationError):
    """入力ファイルが存在しない場合の例外。"""

    def __init__(self, path: str, field: Optional[str] = None):
        kind = field or "Input"
        super().__init__(f"{kind} file does not exist: {path}", field=field)
        self.path = path


class UnsupportedSubtitleFormat(ValidationError):
    """対応していない字幕形式が指定された場合の例外。"""

    def __init__(self, path: str, extension: str, allowed: Iterable[str]):
        self.path = path
        self.extension = extension
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unsupported subtitle format: {extension or '(none)'} ({path}), "
            f"only supports {', '.join(self.allowed)}",
            field="subtitle",
        )


class ProbeFailed(Exception):
    """メディア情報の取得に失敗したことを表す例外。"""

    def __init__(self, path: str, cause: object):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause
        self.message = f"Failed to probe {path}: {cause}"

    def __str__(self):
        return f"Probe Error: {self.message}"


class EncodeFailed(Exception):
    """エンコードエンジンが非0で終了、起動できない、またはタイムアウトしたことを表す例外。"""

    def __init__(self, exit_status: Optional[int], diagnostic_log: Sequence[str]):
        self.exit_status = exit_status
        self.diagnostic_log = list(diagnostic_log)
        self.message = (
            f"Encoder exited with code {exit_status}"
            if exit_status is not None
            else "Encoder did not run to completion"
        )
        super().__init__(self.message)

    @property
    def log_tail(self) -> str:
        return "\n".join(self.diagnostic_log)

    def __str__(self):
        if self.diagnostic_log:
            return f"Encode Error: {self.message}. stderr:\n{self.log_tail}"
        return f"Encode Error: {self.message}"


class PipelineError(Exception):
    """パイプライン処理で発生したエラーを表す例外。"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"Pipeline Error: {self.message}"
