# another_i/config/strings.py
#
# User-facing text. The application speaks Japanese throughout.

DEFAULT_FOLDER_ID = "folder-1"
DEFAULT_FOLDER_NAME = "会話"
NEW_FOLDER_NAME = "新しいフォルダ"
NEW_CONVERSATION_TITLE = "新しい会話"
UNTITLED_IMPORT_TITLE = "無題の会話"

CONNECTION_APOLOGY = "すみません、接続に問題が発生しました。もう一度お試しください。"

# Shown in place of a reply when the vendor call fails at the route level.
PROVIDER_ERROR_TEMPLATE = (
    "⚠️ API エラーが発生しました: {error}\n\n"
    "設定を確認してください。長すぎるメッセージの場合は、内容を短くしてお試しください。"
)

DEMO_RESPONSES = (
    "なるほど、それは大切なポイントですね。もう少し具体的に、どんな状況でそう感じますか？",
    "その考え、よく分かります。整理してみましょう。一番気になっているのはどの部分ですか？",
    "それぞれの選択肢について、メリットとデメリットを書き出してみましょうか？",
    "その気持ち、抱えているのは大変ですよね。優先順位をつけるとしたら、何が一番重要ですか？",
    "なるほど。その中で、今すぐ決めなければいけないことと、後で考えても良いことを分けてみましょう。",
)

# (keywords, reply); first match wins
DEMO_KEYWORD_RESPONSES = (
    (("悩", "困"), "その悩み、じっくり一緒に考えましょう。具体的にどんなことで困っていますか？"),
    (("仕事", "優先"), "仕事の優先順位で迷っているんですね。今抱えているタスクを書き出してみましょうか？"),
    (("整理", "まとめ"), "これまでの話を整理してみますね。いくつかの重要なポイントが見えてきました。"),
)

# Thought document
DOCUMENT_DEFAULT_HEADING = "思考ログ"
DOCUMENT_TRANSCRIPT_HEADING = "対話の記録"
DOCUMENT_SUMMARY_HEADING = "サマリー"
DOCUMENT_KEY_POINTS_HEADING = "キーポイント"
DOCUMENT_USER_BLOCK = "💭 私の考え {index}"
DOCUMENT_USER_COUNT = "📝 {count}件のトピックについて対話しました"
DOCUMENT_ASSISTANT_COUNT = "💡 {count}件のフィードバックを受けました"
DOCUMENT_IMPORTED_AT = "インポート日時"
ASSISTANT_LABEL = "Another I"
IMPORTED_ASSISTANT_LABEL = "ChatGPT"

# Remote summarization transcript labels
TRANSCRIPT_USER_LABEL = "ユーザー"
TRANSCRIPT_ASSISTANT_LABEL = "AI"

# Export
EXPORT_CREATED = "📅 作成"
EXPORT_UPDATED = "📅 更新"
EXPORT_USER_HEADING = "💭 ユーザー"
EXPORT_ASSISTANT_HEADING = "🤖 AI"

# Import errors
IMPORT_NOT_JSON_FILE = "JSONファイルを選択してください"
IMPORT_NOT_CHATGPT_FORMAT = "ChatGPTのエクスポート形式ではありません"
IMPORT_PARSE_FAILED = "ファイルの解析に失敗しました"

# Gemini finish reasons
GEMINI_FINISH_REASONS = {
    "MAX_TOKENS": "トークン上限に達しました。短いメッセージでお試しください。",
    "SAFETY": "セーフティフィルターにより停止されました。",
    "RECITATION": "引用制限により停止されました。",
    "OTHER": "予期しない理由で停止されました。",
}
GEMINI_BLOCKED = "コンテンツがブロックされました: {reason}"
GEMINI_EMPTY = "Geminiからの応答が空でした。メッセージが長すぎる可能性があります。"
