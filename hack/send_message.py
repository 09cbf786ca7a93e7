"""受信メッセージ送信スクリプト。

ブリッジの代わりに HTTP POST で /api/v1/messages にチャットメッセージを送信する
開発・テスト用スクリプト。
"""

import argparse
import http.client
import json
import sys
import time
from datetime import datetime, timezone


def create_parser() -> argparse.ArgumentParser:
    """コマンドライン引数パーサーを作成する。"""
    parser = argparse.ArgumentParser(
        description="チャットメッセージをサーバーに送信する",
    )
    parser.add_argument("content", help="メッセージ本文 (例: '@bot こんにちは')")
    parser.add_argument(
        "-g",
        "--chat-id",
        required=True,
        help="送信先のグループ ID",
    )
    parser.add_argument(
        "-s",
        "--sender",
        default="tester@example",
        help="送信者 ID (デフォルト: tester@example)",
    )
    parser.add_argument(
        "-r",
        "--reply-to-bot",
        action="store_true",
        help="ボットへの返信として送信する",
    )
    parser.add_argument(
        "-H",
        "--host",
        default="localhost",
        help="サーバーホスト (デフォルト: localhost)",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=8080,
        help="サーバーポート (デフォルト: 8080)",
    )
    return parser


def send_message(
    host: str, port: int, chat_id: str, sender: str, content: str, reply_to_bot: bool
) -> tuple[bool, str]:
    """メッセージを送信する。

    Returns:
        (成功フラグ, メッセージ ID またはエラー内容) のタプル
    """
    now = datetime.now(timezone.utc)
    payload = {
        "id": f"hack-{int(now.timestamp() * 1000)}",
        "chat_id": chat_id,
        "sender": sender,
        "content": content,
        "timestamp": now.isoformat(),
        "is_reply_to_bot": reply_to_bot,
    }

    try:
        conn = http.client.HTTPConnection(host, port, timeout=30)
        try:
            conn.request(
                "POST",
                "/api/v1/messages",
                body=json.dumps(payload),
                headers={"Content-Type": "application/json"},
            )
            response = conn.getresponse()
            body = response.read().decode("utf-8")
        finally:
            conn.close()
    except ConnectionRefusedError:
        return False, "Connection refused"
    except TimeoutError:
        return False, "Connection timeout"
    except OSError as e:
        return False, str(e)

    if response.status != 202:
        return False, f"{response.status} {response.reason}: {body}"
    try:
        return True, json.loads(body).get("message_id", "unknown")
    except json.JSONDecodeError:
        return False, f"Invalid JSON response: {body}"


def main() -> int:
    """メインエントリーポイント。"""
    args = create_parser().parse_args()

    print(f"Sending message to http://{args.host}:{args.port}/api/v1/messages ...")
    started = time.monotonic()
    success, result = send_message(
        args.host, args.port, args.chat_id, args.sender, args.content, args.reply_to_bot
    )
    if not success:
        print(f"Error: {result}")
        return 1

    print(f"Message ID: {result} ({time.monotonic() - started:.2f}s)")
    print("返信はブリッジ側で確認してください。")
    return 0


if __name__ == "__main__":
    sys.exit(main())
