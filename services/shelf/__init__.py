"""카카오웹툰·카카오페이지·리디 작품 페이지에서 메타데이터를 뽑아 Notion DB에 적재하는 패키지."""
