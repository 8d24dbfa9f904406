# triagebot/services/prompts.py
# Language-templated prompts for the generation service. Keys are Language values.

ANALYSIS_SHAPE = (
    '{"possibleConditions": ["condition1", "condition2"], "urgencyLevel": "MEDIUM", '
    '"recommendations": ["recommendation1", "recommendation2"], "riskScore": 5, "emergencyFlags": ["flag1"]}'
)

ASSESSMENT_SHAPE = '{"isEmergency": false, "emergencyType": "", "message": "warning message"}'

ANALYSIS_PROMPTS = {
    "EN": (
        "You are an experienced medical professional. The patient reports: \"{symptoms}\"\n\n"
        "Analyze the symptoms:\n"
        "1. Possible conditions (at most 5)\n"
        "2. Urgency level (LOW/MEDIUM/HIGH/EMERGENCY)\n"
        "3. Recommendations (at most 3)\n"
        "4. Risk score (0-10)\n"
        "5. Emergency flags (if any)\n\n"
        "Respond with a JSON object in this exact format:\n"
        f"{ANALYSIS_SHAPE}"
    ),
    "BN": (
        "আপনি একজন অভিজ্ঞ চিকিৎসক। রোগী বলেছেন: \"{symptoms}\"\n\n"
        "অনুগ্রহ করে বিশ্লেষণ করুন:\n"
        "1. সম্ভাব্য রোগ (সর্বোচ্চ ৫টি)\n"
        "2. জরুরিতার মাত্রা (LOW/MEDIUM/HIGH/EMERGENCY)\n"
        "3. সুপারিশ (সর্বোচ্চ ৩টি)\n"
        "4. ঝুঁকির স্কোর (০-১০)\n"
        "5. জরুরি সতর্কতা (যদি থাকে)\n\n"
        "Respond with a JSON object in this exact format:\n"
        f"{ANALYSIS_SHAPE}"
    ),
}

ASSESSMENT_PROMPTS = {
    "EN": (
        "Analyze for emergency medical situations.\n\n"
        "Symptoms: {symptoms}\n\n"
        "Consider these emergency conditions:\n"
        "- Stroke (facial drooping, speech difficulty, arm weakness)\n"
        "- Heart attack (chest pain, shortness of breath)\n"
        "- Severe injuries\n"
        "- Unconsciousness\n"
        "- Severe bleeding\n"
        "- Breathing difficulties\n"
        "- Pregnancy complications\n\n"
        "Respond with a JSON object in this exact format:\n"
        f"{ASSESSMENT_SHAPE}"
    ),
    "BN": (
        "জরুরি চিকিৎসা সংক্রান্ত সতর্কতা বিশ্লেষণ করুন।\n\n"
        "লক্ষণসমূহ: {symptoms}\n\n"
        "নিম্নলিখিত জরুরি অবস্থার মধ্যে কোনটি থাকলে \"EMERGENCY\" বলুন:\n"
        "- স্ট্রোক (চেহারা বিকৃতি, কথা বলতে না পারা, হাত-পা অবশ হওয়া)\n"
        "- হার্ট অ্যাটাক (বুকে ব্যথা, শ্বাসকষ্ট)\n"
        "- গুরুতর আঘাত\n"
        "- অজ্ঞান হওয়া\n"
        "- খুব বেশি রক্তক্ষরণ\n"
        "- শ্বাস নিতে না পারা\n"
        "- গর্ভাবস্থার জটিলতা\n\n"
        "Respond with a JSON object in this exact format:\n"
        f"{ASSESSMENT_SHAPE}"
    ),
}


def _render(templates: dict, symptoms: str, language: str) -> str:
    template = templates.get(language) or templates["EN"]
    # str.replace rather than format(): narratives may contain braces
    return template.replace("{symptoms}", symptoms.replace('"', "'"))


def analysis_prompt(symptoms: str, language: str) -> str:
    return _render(ANALYSIS_PROMPTS, symptoms, language)


def assessment_prompt(symptoms: str, language: str) -> str:
    return _render(ASSESSMENT_PROMPTS, symptoms, language)
