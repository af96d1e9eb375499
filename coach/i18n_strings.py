STRINGS = {
  "en": {
    "child_fallback": "your child",

    "time.morning": "morning",
    "time.afternoon": "afternoon",
    "time.evening": "evening",
    "time.night": "night",

    # goal_at_risk
    "insights.goal_at_risk.title": "{goal_name} needs a push",
    "insights.goal_at_risk.one_liner": "Only {days_remaining} days left and {progress} complete.",
    "insights.goal_at_risk.step_1": "Focus on quick wins that earn stars",
    "insights.goal_at_risk.step_2": "Celebrate each step toward the goal",
    "insights.goal_at_risk.step_3": "Consider if the goal needs adjusting",
    "insights.goal_at_risk.why": (
      "Based on {count} moments in the last {days} days, the current pace "
      "would need about {projected_days} days to finish."
    ),

    # goal_stalled
    "insights.goal_stalled.title": "{goal_name} progress has paused",
    "insights.goal_stalled.one_liner": "No progress in the last {days_since} days.",
    "insights.goal_stalled.step_1": "Check in with {child_name} about the goal",
    "insights.goal_stalled.step_2": "Look for small wins to log today",
    "insights.goal_stalled.step_3": "Consider breaking the goal into smaller milestones",
    "insights.goal_stalled.why": "No positive moments logged toward this goal in {days_since} days.",

    # routine_forming
    "insights.routine_forming.title": "{behavior_name} is becoming a habit",
    "insights.routine_forming.one_liner": "{child_name} has done this {count} times in the last {days} days.",
    "insights.routine_forming.step_1": "Keep acknowledging when it happens",
    "insights.routine_forming.step_2": "Try not to overpraise - consistency matters more",
    "insights.routine_forming.step_3": "Notice if it happens at the same time each day",
    "insights.routine_forming.why": "{count} occurrences in {days} days shows a pattern forming.",

    # routine_slipping
    "insights.routine_slipping.title": "{behavior_name} has been quiet",
    "insights.routine_slipping.one_liner": "Last logged {days_since} days ago after being consistent.",
    "insights.routine_slipping.step_1": "Check if something changed in the routine",
    "insights.routine_slipping.step_2": "Gently remind {child_name} about this behavior",
    "insights.routine_slipping.step_3": "Don't worry - habits can restart",
    "insights.routine_slipping.why": (
      "This routine was logged {older_count} times the week before "
      "but only {count} times since."
    ),

    # high_challenge_week
    "insights.high_challenge_week.title": "Tough stretch for {child_name}",
    "insights.high_challenge_week.one_liner": "{count} challenges logged in the last {days} days.",
    "insights.high_challenge_week.step_1": "Look for patterns in when challenges happen",
    "insights.high_challenge_week.step_2": "Try to catch and log more positive moments",
    "insights.high_challenge_week.step_3": "Consider if something external is affecting behavior",
    "insights.high_challenge_week.why": (
      "More challenges than positive moments in the last {days} days. "
      "This is data, not a judgment."
    ),

    # recurring_challenge
    "insights.recurring_challenge.title": "{behavior_name} keeps coming up",
    "insights.recurring_challenge.one_liner": "{count} times in {days} days, mostly in the {time_bucket}.",
    "insights.recurring_challenge.one_liner_no_pattern": "{count} times in {days} days, with no clear time pattern yet.",
    "insights.recurring_challenge.step_1": "Notice what happens right before it starts",
    "insights.recurring_challenge.step_2": "Name the expectation ahead of the tricky moment",
    "insights.recurring_challenge.step_3": "Log the wins around it too",
    "insights.recurring_challenge.why": "Based on {count} logged moments of {behavior_name} in the last {days} days.",

    # positive_pattern
    "insights.positive_pattern.title": "{behavior_name} is {child_name}'s strength",
    "insights.positive_pattern.one_liner": "Logged {count} times in the last {days} days.",
    "insights.positive_pattern.step_1": "Tell {child_name} what you noticed",
    "insights.positive_pattern.step_2": "Use this strength to build a new habit",
    "insights.positive_pattern.step_3": "Keep catching it in the moment",
    "insights.positive_pattern.why": "{behavior_name} is the most frequently logged win in the last {days} days.",
  },

  "pt_br": {
    "child_fallback": "seu filho",

    "time.morning": "manhã",
    "time.afternoon": "tarde",
    "time.evening": "noite",
    "time.night": "madrugada",

    "insights.goal_at_risk.title": "{goal_name} precisa de um empurrão",
    "insights.goal_at_risk.one_liner": "Faltam só {days_remaining} dias e {progress} foi concluído.",
    "insights.goal_at_risk.step_1": "Foque em vitórias rápidas que rendem estrelas",
    "insights.goal_at_risk.step_2": "Comemore cada passo rumo à meta",
    "insights.goal_at_risk.step_3": "Veja se a meta precisa de ajuste",
    "insights.goal_at_risk.why": (
      "Com base em {count} momentos nos últimos {days} dias, o ritmo atual "
      "levaria cerca de {projected_days} dias para concluir."
    ),

    "insights.goal_stalled.title": "{goal_name} está parada",
    "insights.goal_stalled.one_liner": "Nenhum progresso nos últimos {days_since} dias.",
    "insights.goal_stalled.step_1": "Converse com {child_name} sobre a meta",
    "insights.goal_stalled.step_2": "Procure pequenas vitórias para registrar hoje",
    "insights.goal_stalled.step_3": "Divida a meta em etapas menores",
    "insights.goal_stalled.why": "Nenhum momento positivo registrado para esta meta em {days_since} dias.",

    "insights.routine_forming.title": "{behavior_name} está virando hábito",
    "insights.routine_forming.one_liner": "{child_name} fez isso {count} vezes nos últimos {days} dias.",
    "insights.routine_forming.step_1": "Continue reconhecendo quando acontece",
    "insights.routine_forming.step_2": "Evite elogiar demais - a constância importa mais",
    "insights.routine_forming.step_3": "Repare se acontece sempre no mesmo horário",
    "insights.routine_forming.why": "{count} ocorrências em {days} dias mostram um padrão se formando.",

    "insights.routine_slipping.title": "{behavior_name} anda sumido",
    "insights.routine_slipping.one_liner": "Último registro há {days_since} dias, depois de estar constante.",
    "insights.routine_slipping.step_1": "Veja se algo mudou na rotina",
    "insights.routine_slipping.step_2": "Lembre {child_name} com carinho deste comportamento",
    "insights.routine_slipping.step_3": "Tudo bem - hábitos podem recomeçar",
    "insights.routine_slipping.why": (
      "Esta rotina foi registrada {older_count} vezes na semana anterior "
      "e só {count} vezes desde então."
    ),

    "insights.high_challenge_week.title": "Fase difícil para {child_name}",
    "insights.high_challenge_week.one_liner": "{count} desafios registrados nos últimos {days} dias.",
    "insights.high_challenge_week.step_1": "Procure padrões em quando os desafios acontecem",
    "insights.high_challenge_week.step_2": "Tente notar e registrar mais momentos positivos",
    "insights.high_challenge_week.step_3": "Considere se algo externo está afetando o comportamento",
    "insights.high_challenge_week.why": (
      "Mais desafios do que momentos positivos nos últimos {days} dias. "
      "Isto é um dado, não um julgamento."
    ),

    "insights.recurring_challenge.title": "{behavior_name} continua aparecendo",
    "insights.recurring_challenge.one_liner": "{count} vezes em {days} dias, principalmente de {time_bucket}.",
    "insights.recurring_challenge.one_liner_no_pattern": "{count} vezes em {days} dias, sem um horário claro ainda.",
    "insights.recurring_challenge.step_1": "Observe o que acontece logo antes",
    "insights.recurring_challenge.step_2": "Combine a expectativa antes do momento difícil",
    "insights.recurring_challenge.step_3": "Registre também as vitórias ao redor",
    "insights.recurring_challenge.why": "Com base em {count} registros de {behavior_name} nos últimos {days} dias.",

    "insights.positive_pattern.title": "{behavior_name} é um ponto forte de {child_name}",
    "insights.positive_pattern.one_liner": "Registrado {count} vezes nos últimos {days} dias.",
    "insights.positive_pattern.step_1": "Conte para {child_name} o que você notou",
    "insights.positive_pattern.step_2": "Use este ponto forte para criar um novo hábito",
    "insights.positive_pattern.step_3": "Continue notando na hora",
    "insights.positive_pattern.why": "{behavior_name} é a vitória mais registrada nos últimos {days} dias.",
  },
}
