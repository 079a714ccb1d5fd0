"""共通ユーティリティ。"""
