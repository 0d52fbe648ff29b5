TRANSCRIPT_PROMPT = """Please transcribe this audio file with speaker identification. \
Provide ONLY a JSON response with this exact structure:

{
  "rawTranscript": "Complete word-for-word transcription with speaker labels like \
'Speaker 1: Hello, how are you? Speaker 2: I'm doing well, thanks.'",
  "speakerCount": 2,
  "speakerSegments": [
    {"speaker": "Speaker 1", "text": "Hello, how are you?", "timestamp": "00:00"},
    {"speaker": "Speaker 2", "text": "I'm doing well, thanks.", "timestamp": "00:05"}
  ]
}

Instructions:
- Be intelligent about identifying different voices and speech patterns
- If you can't clearly distinguish speakers, use "Speaker 1" for all content
- Include natural pauses and "um", "uh" sounds in raw transcript
- Estimate timestamps based on speech flow (don't worry about exact precision)
- Ensure the rawTranscript field contains the complete transcription with speaker labels"""

SUMMARY_SECTIONS_GUIDE = """- Use objective, factual language (avoid subjective opinions)
- Structure with clear sections using **bold headers**
- Use bullet points (•) for all key information
- For software development content, include these sections if applicable:
  * **Overview:** Main purpose and topics
  * **Features Discussed:** List of app features mentioned
  * **Technical Requirements:** Technical specifications, frameworks, APIs
  * **Design Decisions:** UI/UX choices, architecture decisions
  * **Action Items:** Tasks, assignments, deadlines
  * **Next Steps:** Follow-up meetings, deliverables
- For general content, use:
  * **Overview:** Purpose and main topics
  * **Key Points:** Important discussion items
  * **Decisions Made:** Conclusions reached
  * **Action Items:** Tasks and next steps
- Be specific with feature lists (e.g., "Authentication system", "User dashboard")
- Include technical terms mentioned (React, API, database, etc.)
- List concrete deliverables and timelines
- Keep bullet points concise but informative"""

TRANSCRIPT_SUMMARY_PROMPT = """Based on the following raw transcript, please generate an \
objective, structured AI summary with bullet points.

RAW TRANSCRIPT:
"{transcript}"

Please provide ONLY a JSON response with this structure:
{{
  "aiSummary": "**Overview:**\\n• Key discussion points in bullet format\\n• Decisions made and \
action items\\n\\n**Action Items:**\\n• Tasks assigned\\n• Next steps\\n• Deadlines mentioned"
}}

AI SUMMARY Guidelines:
{guide}
- If audio quality was poor, mention it in the summary"""

LENGTH_INSTRUCTIONS = {
    "short": "Create a concise summary with 3-5 bullet points highlighting only the most critical information.",
    "medium": "Create a comprehensive summary with 6-10 bullet points covering key topics, decisions, "
              "and action items.",
    "detailed": "Create a detailed summary with 10-15 bullet points providing thorough coverage of all "
                "important topics, subtopics, decisions, technical details, and action items.",
}

TEXT_SUMMARY_PROMPT = """Based on the following text, please generate an objective, structured \
AI summary with bullet points.

TEXT TO SUMMARIZE:
"{text}"

Please provide ONLY a JSON response with this structure:
{{
  "aiSummary": "**Overview:**\\n• Key discussion points in bullet format\\n\\n**Key Points:**\\n\
• Main topics covered\\n\\n**Action Items:** (if any)\\n• Tasks or next steps mentioned"
}}

AI SUMMARY Guidelines:
- {length_instruction}
{guide}
- If the text quality is poor or unclear, mention it in the summary
- If no action items exist, omit that section"""

CONSOLIDATION_PROMPT = """Below are several partial summaries of the same content. Consolidate \
them into one final summary with the same format. Remove redundancies and merge the sections.

{summaries}"""

BUILDER_PROMPT = """You are an expert prompt engineer. I have created a visual prompt builder \
with the following components arranged on a canvas:

{components}

Based on these components and their positions, create a comprehensive, well-structured prompt that:

1. Takes into account the spatial relationships between components
2. Creates a logical flow from the component arrangement
3. Incorporates the component configurations effectively
4. Results in a clear, actionable prompt for an AI system

The components are arranged from top-left (0,0) to bottom-right. Components closer together \
should be more related in the final prompt structure.

Please generate a detailed, professional prompt that makes use of all these elements cohesively."""

ASSISTANT_PROMPT = """You are an expert AI assistant prompt engineer. Generate a detailed, \
actionable prompt for a {label} working on a software development project.

## Project Context:
**Project Name:** {project_name}
**Project Description:** {project_description}

## Meeting/Audio Content:
{audio_content}

## Assistant Role: {label}
**Responsibilities:** {description}

## Instructions:
Generate a comprehensive prompt that will help a {label} AI assistant effectively support this \
project. The prompt should:

1. **Clearly define the role and responsibilities** specific to {label}
2. **Reference specific requirements, features, and decisions** mentioned in the audio content
3. **Provide actionable guidance** for typical tasks this assistant will handle
4. **Include relevant technical context** from the project and meetings
5. **Be copy-paste ready** for immediate use with an AI assistant
6. **Be approximately 500-800 words** with clear structure and sections

## Output Format:
Provide ONLY the assistant prompt content. Do not include explanations, meta-commentary, or \
additional text. The output should be the complete prompt that can be directly copied and used.

## {label} Prompt Focus Areas:
{guidelines}

Generate the prompt now:"""

FALLBACK_ASSISTANT_PROMPT = """# {label} Assistant Prompt

## Project Context
You are a {label} assistant working on the "{project_name}" project.

**Project Description:** {project_description}

## Your Role
{description}

## Key Responsibilities
{guidelines}

## Instructions
- Provide expert guidance in your area of specialization
- Reference the project context in your responses
- Offer practical, actionable advice
- Consider project constraints and requirements
- Maintain focus on project goals and deliverables

## Communication Style
- Be clear and concise in your responses
- Ask clarifying questions when needed
- Provide examples and best practices
- Suggest alternatives when appropriate
- Stay focused on your role's responsibilities

*Note: This is a fallback prompt. For best results, generate a custom prompt based on specific \
project requirements and meeting content.*"""
