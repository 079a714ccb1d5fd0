"""subtitles フィルタに埋め込むパスのエスケープ。"""


def escape_subtitle_path(file_path: str) -> str:
    """バックスラッシュ→4個、コロン→``\\:``、単引用符→``\\'`` の順に置換する。

    順序を変えるとエンジン側のパーサで過不足が出るため固定。
    """
    return (
        file_path.replace("\\", "\\\\\\\\")
        .replace(":", "\\:")
        .replace("'", "\\'")
    )
