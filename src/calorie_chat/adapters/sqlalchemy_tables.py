"""Relational schema for the snapshot store."""

from sqlalchemy import Column, Float, ForeignKey, Integer, MetaData, Table, Text

SETTINGS_ROW_ID = 1

metadata = MetaData()

settings_table = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("targetCalories", Integer),
    Column("proteinRatio", Integer),
    Column("carbsRatio", Integer),
    Column("fatRatio", Integer),
    Column("theme", Text),
    Column("lastUpdated", Text),
)

custom_foods_table = Table(
    "custom_foods",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text),
    Column("calories", Float),
    Column("protein", Float),
    Column("carbs", Float),
    Column("fat", Float),
    Column("servingSize", Text),
    Column("createdAt", Text),
    # SQLite has no boolean type; stored as 0/1.
    Column("isCustom", Integer),
    Column("lastUpdated", Text),
)

daily_entries_table = Table(
    "daily_entries",
    metadata,
    Column("id", Text, primary_key=True),
    Column("date", Text),
    Column("totalCalories", Float),
    Column("totalProtein", Float),
    Column("totalCarbs", Float),
    Column("totalFat", Float),
    Column("lastUpdated", Text),
)

consumed_foods_table = Table(
    "consumed_foods",
    metadata,
    Column("foodId", Text, primary_key=True),
    Column("dailyEntryId", Text, ForeignKey("daily_entries.id")),
    Column("name", Text),
    Column("servingSize", Text),
    Column("quantity", Float),
    Column("calories", Float),
    Column("protein", Float),
    Column("carbs", Float),
    Column("fat", Float),
    Column("mealType", Text),
    Column("time", Text),
    Column("lastUpdated", Text),
)

chat_messages_table = Table(
    "chat_messages",
    metadata,
    Column("id", Text, primary_key=True),
    Column("date", Text),
    Column("role", Text),
    Column("content", Text),
    Column("timestamp", Text),
    # JSON array of proposed ConsumedFood items, NULL when none.
    Column("foodItems", Text),
)
