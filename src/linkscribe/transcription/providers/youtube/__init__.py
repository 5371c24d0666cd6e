"""YouTube transcripts: youtubei, caption tracks, yt-dlp audio and Apify."""
