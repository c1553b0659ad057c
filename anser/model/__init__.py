"""Plain data types describing migrations, their options and configuration."""